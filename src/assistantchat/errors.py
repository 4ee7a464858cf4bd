"""
Exceptions raised inside the assistant chat workflows.

Workflow callers never see these raised; they arrive on ``WorkflowResult.error``
and on ``ChatState.error``.
"""

from __future__ import annotations


class AssistantChatError(Exception):
    """Base exception for all assistant chat errors."""

    pass


class MissingIdentifierError(AssistantChatError):
    """Raised when a collaborator completed but returned no identifier."""

    def __init__(self, identifier_name: str) -> None:
        self.identifier_name = identifier_name
        super().__init__(f"{identifier_name} is null")


class SessionBusyError(AssistantChatError):
    """Raised when a workflow is started while another one is still in flight."""

    def __init__(self, phase: str) -> None:
        self.phase = phase
        super().__init__(f"Session is busy ({phase})")


class BackendError(AssistantChatError):
    """Raised when the assistant backend reports a failure."""

    pass


class RunFailedError(BackendError):
    """Raised when an assistant run ends in a non-completed terminal status."""

    def __init__(self, run_id: str, status: str) -> None:
        self.run_id = run_id
        self.status = status
        super().__init__(f"Run {run_id} ended with status '{status}'")


class EmptyResponseError(BackendError):
    """Raised when a completed run produced no assistant text."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Run {run_id} produced no assistant message")


class SessionAlreadyStartedError(AssistantChatError):
    """Raised when bootstrap is requested on a session that already has an assistant."""

    def __init__(self, assistant_id: str) -> None:
        self.assistant_id = assistant_id
        super().__init__(f"Session already bound to assistant {assistant_id}")
