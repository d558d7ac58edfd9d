#!/usr/bin/env python3
"""
Cadence Exceptions Package

Unified exception hierarchy for the chat client.
"""

from .base import CadenceBaseError

from .provider import (
    ProviderError,
    InvalidModelError,
    UnknownModelError,
    ProviderStreamError,
)

from .config import (
    ConfigurationError,
    NoClientForProviderError,
    StateFileError,
)

from .agent import TurnInProgressError, CommandError, FileReadError

__all__ = [
    "CadenceBaseError",
    "ProviderError",
    "InvalidModelError",
    "UnknownModelError",
    "ProviderStreamError",
    "ConfigurationError",
    "NoClientForProviderError",
    "StateFileError",
    "TurnInProgressError",
    "CommandError",
    "FileReadError",
]
