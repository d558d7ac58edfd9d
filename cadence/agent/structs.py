from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List
import time
import uuid

# --- 0. Conversation Records ---


def new_message_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Message:
    """
    One entry of a conversation.

    The content of an in-flight assistant message is only mutated by the
    stream consumer's flush; it is never touched once the turn ends.
    """

    role: str  # "user", "assistant", "system"
    content: str
    id: str = field(default_factory=new_message_id)
    timestamp: float = field(default_factory=time.time)
    model_id: Optional[str] = None
    token_count: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
            "model_id": self.model_id,
            "token_count": self.token_count,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            role=data["role"],
            content=data.get("content", ""),
            id=data.get("id") or new_message_id(),
            timestamp=float(data.get("timestamp", 0.0)),
            model_id=data.get("model_id"),
            token_count=data.get("token_count"),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class ModelConfig:
    """Static description of a model. Loaded once from the registry."""

    id: str
    name: str
    provider: str
    deployment: str
    description: str
    context_window: int
    supports_streaming: bool = True
    speed: str = "medium"
    capabilities: tuple = ()


@dataclass
class ContextConfig:
    max_tokens: int = 128000
    sliding_window_size: int = 4000
    system_prompt_tokens: int = 1000
    file_content_tokens: int = 10000
    response_reserve: int = 1000


@dataclass
class FileContent:
    path: str
    content: str
    size: int
    language: Optional[str] = None
    truncated: bool = False


# --- 1. Streaming ---


@dataclass
class StreamChunk:
    """
    A single normalized increment of a streamed response.

    token_count is the running estimate for the whole response so far,
    not for this delta.
    """

    delta: str
    done: bool = False
    token_count: Optional[int] = None
    finish_reason: Optional[str] = None


@dataclass
class StreamOutcome:
    """How a consumed stream ended."""

    status: str  # "complete", "error"
    finish_reason: Optional[str] = None
    error: Optional[str] = None
    flushes: int = 0


@dataclass
class TurnUpdate:
    """UI-visible state of the assistant message for the running turn."""

    message: Message
    status: str  # "streaming", "complete", "error", "cancelled"
    error: Optional[str] = None


# --- 2. Conversations ---


@dataclass
class Conversation:
    messages: List[Message] = field(default_factory=list)
    total_tokens: int = 0
    last_modified: float = field(default_factory=time.time)

    @property
    def message_count(self) -> int:
        return len(self.messages)


# --- 3. Upstream Events (UI -> Service) ---


@dataclass
class UserRequest:
    """Payload for USER_INPUT_SUBMITTED."""

    text: str
    source: str = "plain"
    timestamp: float = field(default_factory=time.time)


@dataclass
class AgentStatus:
    """Payload for STATUS_CHANGED."""

    status: str
    message: str
