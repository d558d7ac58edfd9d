#!/usr/bin/env python3
"""
Base Exception Contract for Cadence

All domain-specific exceptions inherit from CadenceBaseError.
"""

from typing import Optional


class CadenceBaseError(Exception):
    """
    The Base Contract for all Cadence errors.
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        user_hint: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.user_hint = user_hint or "An internal error occurred."
        self.details = details or {}
