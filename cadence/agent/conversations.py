import time
from typing import Any, Dict, List

from cadence.agent.context.logic import calculate_total_tokens
from cadence.agent.structs import Conversation, Message


class ConversationBook:
    """
    One Conversation per model id.

    Switching models only changes which conversation receives new
    messages; the others are left untouched.
    """

    def __init__(self):
        self._conversations: Dict[str, Conversation] = {}

    def get(self, model_id: str) -> Conversation:
        if model_id not in self._conversations:
            self._conversations[model_id] = Conversation()
        return self._conversations[model_id]

    def model_ids(self) -> List[str]:
        return list(self._conversations)

    def touch(self, model_id: str) -> Conversation:
        """Recompute totals after the message list changed."""
        conversation = self.get(model_id)
        conversation.total_tokens = calculate_total_tokens(conversation.messages)
        conversation.last_modified = time.time()
        return conversation

    def clear(self, model_id: str) -> None:
        conversation = self.get(model_id)
        conversation.messages.clear()
        self.touch(model_id)

    def clear_all(self) -> None:
        for model_id in list(self._conversations):
            self.clear(model_id)

    # --- Serialization ---

    def to_dict(self) -> Dict[str, Any]:
        return {
            model_id: {
                "messages": [m.to_dict() for m in conv.messages],
                "total_tokens": conv.total_tokens,
                "last_modified": conv.last_modified,
                "message_count": conv.message_count,
            }
            for model_id, conv in self._conversations.items()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationBook":
        book = cls()
        for model_id, raw in (data or {}).items():
            messages = [Message.from_dict(m) for m in raw.get("messages", [])]
            book._conversations[model_id] = Conversation(
                messages=messages,
                total_tokens=int(raw.get("total_tokens", 0)),
                last_modified=float(raw.get("last_modified", time.time())),
            )
        return book
