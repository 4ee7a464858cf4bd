"""Assistant chat sessions: bootstrap an assistant thread and exchange messages with it."""

from .errors import (
    AssistantChatError,
    BackendError,
    EmptyResponseError,
    MissingIdentifierError,
    RunFailedError,
    SessionAlreadyStartedError,
    SessionBusyError,
)
from .models import (
    AssistantDetails,
    ChatState,
    Message,
    MessageRole,
    SessionPhase,
    WorkflowResult,
)
from .services.chat_manager import ChatManager

__all__ = [
    "AssistantChatError",
    "AssistantDetails",
    "BackendError",
    "ChatManager",
    "ChatState",
    "EmptyResponseError",
    "Message",
    "MessageRole",
    "MissingIdentifierError",
    "RunFailedError",
    "SessionAlreadyStartedError",
    "SessionBusyError",
    "SessionPhase",
    "WorkflowResult",
]
