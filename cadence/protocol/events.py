from enum import Enum


class EventTypes(str, Enum):
    """
    Canonical event names shared by the UI and the chat service.
    Using an Enum prevents typo bugs (e.g., 'user_input' vs 'user_input_submitted').
    """

    # 1. System Events
    INFO = "info"
    STATUS_CHANGED = "status_changed"
    WARNING = "warning"
    ERROR = "error"

    # 2. Conversation Events (Downstream)
    STREAM_UPDATE = "stream_update"
    RESPONSE_COMPLETE = "response_complete"

    # 3. Input Events (Upstream: UI -> Service)
    USER_INPUT_SUBMITTED = "user_input_submitted"
    USER_INPUT_CANCELLED = "user_input_cancelled"

    # 4. Command/Config Events
    COMMAND_RESULT = "command_result"
    MODEL_SWITCHED = "model_switched"
    SHUTDOWN_REQUESTED = "shutdown_requested"
