#!/usr/bin/env python3
"""
Configuration Exception Definitions for Cadence
"""

from typing import Optional

from .base import CadenceBaseError


class ConfigurationError(CadenceBaseError):
    """Raised when settings or provider credentials are invalid or missing."""

    def __init__(self, message: str, setting: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.setting = setting
        self.user_hint = (
            "Check your .env file and environment variables for this provider."
        )


class NoClientForProviderError(ConfigurationError):
    """Raised when a model resolves to a provider with no configured adapter."""

    def __init__(self, message: str, provider_name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.provider_name = provider_name


class StateFileError(CadenceBaseError):
    """Raised when the state file cannot be written."""

    def __init__(self, message, file_path=None, operation=None, **kwargs):
        super().__init__(message, **kwargs)
        self.file_path = file_path
        self.operation = operation
