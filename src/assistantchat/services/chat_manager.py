import logging
from typing import List

from ..backend import AssistantBackend, FileInput, OpenAIAssistantBackend
from ..errors import MissingIdentifierError, SessionAlreadyStartedError, SessionBusyError
from ..models import (
    AssistantDetails,
    ChatState,
    Message,
    MessageRole,
    MessageSink,
    SessionPhase,
    StatusSink,
    WorkflowResult,
)
from ..settings import Settings, get_settings

logger = logging.getLogger(__name__)

STATUS_INITIALIZING = "Initializing..."
STATUS_UPLOADED = "Uploading file..."
STATUS_ASSISTANT_CREATED = "Creating assistant..."
STATUS_THREAD_CREATED = "Creating thread..."
STATUS_RUN_STARTED = "Running assistant..."
STATUS_DONE = "Done"


class ChatManager:
    """Owns one assistant session: bootstrap it once, then exchange messages.

    Workflows never raise collaborator errors. Failures are returned on the
    ``WorkflowResult`` and also kept in ``ChatState.error`` until the next
    failing call overwrites it.

    A user message is appended to the log before the backend is contacted
    and stays there even when the exchange later fails.
    """

    _instance: "ChatManager | None" = None

    def __init__(
        self,
        backend: AssistantBackend,
        message_sink: MessageSink,
        status_sink: StatusSink,
        settings: Settings | None = None,
    ) -> None:
        self._backend = backend
        self._settings = settings or get_settings()
        self._state = ChatState(message_sink=message_sink, status_sink=status_sink)
        logger.info("ChatManager initialized")

    @classmethod
    def get_instance(
        cls,
        message_sink: MessageSink,
        status_sink: StatusSink,
        backend: AssistantBackend | None = None,
    ) -> "ChatManager":
        """Return the process-wide session, creating it on first call.

        Sinks (and backend) passed on later calls are ignored.
        """
        if cls._instance is None:
            cls._instance = cls(
                backend or OpenAIAssistantBackend(),
                message_sink,
                status_sink,
            )
        return cls._instance

    def get_current_messages(self) -> List[Message]:
        return list(self._state.messages)

    def get_chat_state(self) -> ChatState:
        logger.debug("Getting chat state")
        return self._state

    def _busy(self, phase: SessionPhase) -> WorkflowResult | None:
        """Return a busy failure if another workflow is in flight."""
        if self._state.phase is SessionPhase.IDLE:
            return None
        logger.warning(
            "Rejecting %s while session is %s", phase.value, self._state.phase.value
        )
        return WorkflowResult.failure(SessionBusyError(self._state.phase.value))

    def _begin(self, phase: SessionPhase) -> None:
        self._state.phase = phase
        self._state.is_loading = True

    def _finish(self) -> None:
        self._state.is_loading = False
        self._state.phase = SessionPhase.IDLE

    def _append(self, message: Message) -> None:
        self._state.messages = [*self._state.messages, message]
        self._state.message_sink(list(self._state.messages))

    def _status(self, text: str) -> None:
        self._state.status_sink(text)

    async def start_assistant(
        self,
        assistant_details: AssistantDetails,
        file: FileInput | None,
        initial_message: str,
    ) -> WorkflowResult:
        """Upload the file, register the assistant, open a thread and fetch the first reply.

        Args:
            assistant_details: Assistant name, instructions, model and tools.
            file: File to attach. Without one the call fails with a missing
                FileId unless settings.allow_missing_file is enabled.
            initial_message: First user message seeding the thread.

        Returns:
            WorkflowResult: The first assistant reply, a skip, or the error.
            A session that already has a thread is rejected untouched. After a
            partial failure the registered assistant is reused and the upload
            and registration stages are not repeated.
        """
        busy = self._busy(SessionPhase.BOOTSTRAPPING)
        if busy is not None:
            return busy
        if self._state.thread_id is not None:
            logger.warning("Assistant already started on thread %s", self._state.thread_id)
            return WorkflowResult.failure(
                SessionAlreadyStartedError(self._state.assistant_id or "")
            )
        self._begin(SessionPhase.BOOTSTRAPPING)

        logger.info("Starting assistant...")
        state = self._state
        try:
            self._status(STATUS_INITIALIZING)

            if state.assistant_id is None:
                file_id = await self._backend.upload_file(file) if file is not None else None
                if file_id is None and not (file is None and self._settings.allow_missing_file):
                    raise MissingIdentifierError("FileId")
                self._status(STATUS_UPLOADED)

                assistant_id = await self._backend.create_assistant(assistant_details, file_id)
                if assistant_id is None:
                    raise MissingIdentifierError("AssistantId")
                self._status(STATUS_ASSISTANT_CREATED)
                state.assistant_id = assistant_id
            else:
                # resuming a partial bootstrap: the registered assistant is kept
                logger.info("Reusing assistant %s", state.assistant_id)
                self._status(STATUS_UPLOADED)
                self._status(STATUS_ASSISTANT_CREATED)

            thread_id = await self._backend.create_thread(initial_message)
            if thread_id is None:
                raise MissingIdentifierError("ThreadId")
            self._status(STATUS_THREAD_CREATED)
            state.thread_id = thread_id

            run_id = await self._backend.run_assistant(state.assistant_id, state.thread_id)
            if run_id is None:
                raise MissingIdentifierError("RunId")
            self._status(STATUS_RUN_STARTED)
            state.run_id = run_id

            if not (state.run_id and state.thread_id):
                logger.warning(
                    "RunId or ThreadId is missing (run=%s, thread=%s); skipping response",
                    state.run_id,
                    state.thread_id,
                )
                return WorkflowResult.skip()

            logger.info(
                "Fetching assistant response with run_id=%s thread_id=%s",
                state.run_id,
                state.thread_id,
            )
            response = await self._backend.fetch_response(state.run_id, state.thread_id)
            state.assistant_response_received = True
            self._append(Message(MessageRole.ASSISTANT, response))
            logger.info("Assistant ready: %d message(s) in log", len(state.messages))
            return WorkflowResult.success(response)
        except Exception as e:
            state.error = e
            logger.exception("Error in starting assistant: %s", e)
            return WorkflowResult.failure(e)
        finally:
            try:
                self._status(STATUS_DONE)
            finally:
                self._finish()

    async def send_message(self, text: str) -> WorkflowResult:
        """Append a user turn and fetch the assistant's reply on the session thread.

        Returns:
            WorkflowResult: The assistant reply; a skip if the session was never
                bootstrapped; or the error.
        """
        busy = self._busy(SessionPhase.EXCHANGING)
        if busy is not None:
            return busy
        self._begin(SessionPhase.EXCHANGING)

        logger.info("Sending message...")
        state = self._state
        try:
            self._append(Message(MessageRole.USER, text))

            if not (state.thread_id and state.assistant_id):
                logger.warning("ThreadId or AssistantId is null; message not sent")
                return WorkflowResult.skip()

            await self._backend.submit_message(text, state.thread_id)
            logger.info("User message submitted. Running assistant...")

            run_id = await self._backend.run_assistant(state.assistant_id, state.thread_id)
            if run_id is None:
                raise MissingIdentifierError("RunId")
            state.run_id = run_id

            response = await self._backend.fetch_response(state.run_id, state.thread_id)
            self._append(Message(MessageRole.ASSISTANT, response))
            logger.info("Assistant response added (%d message(s) in log)", len(state.messages))
            return WorkflowResult.success(response)
        except Exception as e:
            state.error = e
            logger.exception("Error in sending message: %s", e)
            return WorkflowResult.failure(e)
        finally:
            self._finish()
