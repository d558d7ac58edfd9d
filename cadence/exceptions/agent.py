#!/usr/bin/env python3
"""
Chat-turn exceptions.
"""

from .base import CadenceBaseError


class TurnInProgressError(CadenceBaseError):
    """Raised when a send is attempted while the conversation is still streaming."""

    def __init__(self, message: str, model_id=None, **kwargs):
        super().__init__(message, **kwargs)
        self.model_id = model_id
        self.user_hint = "Wait for the current response to finish or press Ctrl-C."


class CommandError(CadenceBaseError):
    """Raised when a slash command cannot be parsed."""

    def __init__(self, message: str, command=None, **kwargs):
        super().__init__(message, **kwargs)
        self.command = command
        self.user_hint = "Type /help to see the available commands."


class FileReadError(CadenceBaseError):
    """Raised when a file requested for context cannot be read."""

    def __init__(self, message: str, file_path=None, **kwargs):
        super().__init__(message, **kwargs)
        self.file_path = file_path
        self.user_hint = "Check the path. Relative paths resolve against the workspace."
