#!/usr/bin/env python3
"""
Provider Exception Classes
==========================

Raised by the stream adapters and the client router.
"""

from typing import Optional

from .base import CadenceBaseError


class ProviderError(CadenceBaseError):
    """
    Base exception for all provider-related errors.
    """

    def __init__(
        self,
        message: str,
        provider_name: Optional[str] = None,
        model_name: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)

        if "provider_name" not in self.details and provider_name:
            self.details["provider_name"] = provider_name
        if "model_name" not in self.details and model_name:
            self.details["model_name"] = model_name

    @property
    def provider_name(self) -> Optional[str]:
        return self.details.get("provider_name")

    @property
    def model_name(self) -> Optional[str]:
        return self.details.get("model_name")


class InvalidModelError(ProviderError):
    """
    Raised when a model id does not belong to the adapter asked to serve it.

    This is a static error: it is raised before any network activity.
    """

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.user_hint = "Use /model to list the models this client knows about."


class UnknownModelError(InvalidModelError):
    """Raised by the router when the model id is not in the registry."""


class ProviderStreamError(ProviderError):
    """
    Raised when a provider request fails after it was started.

    Chunks already delivered before the failure stay delivered; the
    message always reads "<provider> API error: <detail>".
    """

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.user_hint = (
            "The provider returned an error. "
            "Check your connection, API key and deployment name, then retry."
        )
