import math
from typing import Iterable, List, Optional, Sequence, Tuple

from cadence.agent.structs import FileContent, Message

FILE_CONTEXT_HEADER = "Here are the relevant files:"
TRUNCATION_MARKER = "... (truncated)"


def estimate_tokens(text: str) -> int:
    """
    Pure function to estimate token count: ceil(chars / 4).

    Deliberately provider-agnostic, so budgets may drift from what a
    provider actually bills.
    """
    if not text:
        return 0
    return math.ceil(len(text) / 4)


def message_tokens(message: Message) -> int:
    """Recorded token count when present, otherwise the estimate."""
    if message.token_count:
        return message.token_count
    return estimate_tokens(message.content)


def calculate_total_tokens(messages: Iterable[Message]) -> int:
    return sum(message_tokens(m) for m in messages)


def format_file_block(file: FileContent) -> str:
    body = file.content
    if file.truncated:
        body = f"{body}\n{TRUNCATION_MARKER}"
    return f"File: {file.path}\n```{file.language or ''}\n{body}\n```"


def format_file_context(files: Sequence[FileContent]) -> str:
    blocks = "\n\n".join(format_file_block(f) for f in files)
    return f"{FILE_CONTEXT_HEADER}\n\n{blocks}"


def select_sliding_window(
    history: Sequence[Message], window_size: int
) -> Tuple[List[Message], int, int]:
    """
    Walk history newest-to-oldest and keep messages while they fit.

    System-role entries are skipped. The first message that would overflow
    ends the walk; nothing older is considered for the window.

    Returns (window in chronological order, window tokens, cutoff) where
    history[:cutoff] is the older remainder left for backfill.
    """
    window: List[Message] = []
    used = 0
    cutoff = 0

    for index in range(len(history) - 1, -1, -1):
        message = history[index]
        if message.role == "system":
            continue
        cost = message_tokens(message)
        if used + cost > window_size:
            cutoff = index + 1
            break
        window.append(message)
        used += cost

    window.reverse()
    return window, used, cutoff


def select_backfill(
    older: Sequence[Message], remaining_budget: int
) -> Tuple[List[Message], int]:
    """
    Admit older messages oldest-first until one does not fit.

    Returned in chronological order.
    """
    admitted: List[Message] = []
    used = 0
    if remaining_budget <= 0:
        return admitted, used

    for message in older:
        if message.role == "system":
            continue
        cost = message_tokens(message)
        if used + cost > remaining_budget:
            break
        admitted.append(message)
        used += cost

    return admitted, used


def latest_timestamp(history: Sequence[Message]) -> float:
    """Stable timestamp for synthesized messages, derived from the inputs."""
    if not history:
        return 0.0
    return max(m.timestamp for m in history)


def build_system_message(prompt: str, timestamp: float) -> Message:
    return Message(
        role="system",
        content=prompt,
        id="system",
        timestamp=timestamp,
        token_count=estimate_tokens(prompt),
        metadata={"type": "system-prompt"},
    )


def build_file_context_message(
    files: Sequence[FileContent], timestamp: float
) -> Optional[Message]:
    if not files:
        return None
    content = format_file_context(files)
    return Message(
        role="user",
        content=content,
        id="file-context",
        timestamp=timestamp,
        token_count=estimate_tokens(content),
        metadata={"type": "file-context", "files": [f.path for f in files]},
    )
