from .logic import estimate_tokens, message_tokens, calculate_total_tokens
from .manager import ContextWindowManager

__all__ = [
    "estimate_tokens",
    "message_tokens",
    "calculate_total_tokens",
    "ContextWindowManager",
]
