from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List

from pydantic import BaseModel, Field


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """One turn of the conversation."""

    role: MessageRole
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


MessageSink = Callable[[List[Message]], None]
StatusSink = Callable[[str], None]


class SessionPhase(str, Enum):
    IDLE = "idle"
    BOOTSTRAPPING = "bootstrapping"
    EXCHANGING = "exchanging"


@dataclass
class ChatState:
    """Mutable state of a single assistant session."""

    message_sink: MessageSink
    status_sink: StatusSink
    assistant_id: str | None = None
    thread_id: str | None = None
    run_id: str | None = None
    messages: List[Message] = field(default_factory=list)
    is_loading: bool = False
    error: Exception | None = None
    assistant_response_received: bool = False
    phase: SessionPhase = SessionPhase.IDLE


@dataclass(frozen=True)
class WorkflowResult:
    """Outcome of one bootstrap or exchange call.

    ``value`` holds the assistant reply on success. ``skipped`` marks the
    non-fatal path where required identifiers were missing.
    """

    ok: bool
    value: str | None = None
    error: Exception | None = None
    skipped: bool = False

    @classmethod
    def success(cls, value: str) -> "WorkflowResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: Exception) -> "WorkflowResult":
        return cls(ok=False, error=error)

    @classmethod
    def skip(cls) -> "WorkflowResult":
        return cls(ok=True, skipped=True)


class AssistantDetails(BaseModel):
    """Configuration used to register an assistant with the backend."""

    name: str
    instructions: str | None = None
    model: str | None = None
    tools: List[Dict[str, Any]] = Field(default_factory=list)
