import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Tuple

from openai import AsyncOpenAI

from ..errors import EmptyResponseError, RunFailedError
from ..models import AssistantDetails
from ..settings import Settings, get_settings
from .base import FileInput

logger = logging.getLogger(__name__)

PENDING_RUN_STATUSES = frozenset({"queued", "in_progress", "cancelling"})


def _make_client(settings: Settings) -> AsyncOpenAI:
    """Construct an AsyncOpenAI client from settings."""
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout=settings.request_timeout_seconds,
    )


def _read_path(path: Path) -> Tuple[str, bytes]:
    return (path.name, path.read_bytes())


async def _prepare_file(file: FileInput) -> Any:
    """Turn a path into the (filename, bytes) tuple the upload endpoint accepts."""
    if isinstance(file, (str, Path)):
        return await asyncio.to_thread(_read_path, Path(file))
    return file


def _message_text(message: Any) -> str:
    """Join the text parts of an assistant thread message."""
    parts: List[str] = []
    for part in message.content or []:
        if getattr(part, "type", None) == "text":
            parts.append(part.text.value)
    return "\n".join(parts)


class OpenAIAssistantBackend:
    """Assistant backend built on the OpenAI Assistants (beta) API."""

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client or _make_client(self._settings)

    async def upload_file(self, file: FileInput) -> str | None:
        """Upload a file for assistant use.

        Args:
            file: Path, (filename, bytes) tuple, or open binary file.

        Returns:
            str | None: Backend file id.
        """
        uploaded = await self._client.files.create(
            file=await _prepare_file(file),
            purpose=self._settings.file_purpose,
        )
        logger.info("Uploaded file %s", uploaded.id)
        return uploaded.id

    async def create_assistant(
        self, details: AssistantDetails, file_id: str | None
    ) -> str | None:
        """Register an assistant, attaching file search over file_id when given."""
        tools: List[Dict[str, Any]] = list(details.tools)
        kwargs: Dict[str, Any] = {
            "name": details.name,
            "instructions": details.instructions or self._settings.assistant_instructions,
            "model": details.model or self._settings.model,
        }
        if file_id is not None:
            if not any(t.get("type") == "file_search" for t in tools):
                tools.append({"type": "file_search"})
            kwargs["tool_resources"] = {
                "file_search": {"vector_stores": [{"file_ids": [file_id]}]}
            }
        kwargs["tools"] = tools

        assistant = await self._client.beta.assistants.create(**kwargs)
        logger.info("Created assistant %s (%s)", assistant.id, details.name)
        return assistant.id

    async def create_thread(self, initial_message: str) -> str | None:
        thread = await self._client.beta.threads.create(
            messages=[{"role": "user", "content": initial_message}]
        )
        logger.info("Created thread %s", thread.id)
        return thread.id

    async def run_assistant(self, assistant_id: str, thread_id: str) -> str | None:
        run = await self._client.beta.threads.runs.create(
            thread_id=thread_id,
            assistant_id=assistant_id,
        )
        logger.info("Started run %s on thread %s", run.id, thread_id)
        return run.id

    async def _wait_for_run(self, run_id: str, thread_id: str) -> str:
        """Poll the run until it leaves the pending statuses; return the final status."""
        deadline = time.monotonic() + self._settings.run_poll_timeout_seconds
        while True:
            run = await self._client.beta.threads.runs.retrieve(
                run_id, thread_id=thread_id
            )
            if run.status not in PENDING_RUN_STATUSES:
                return run.status
            if time.monotonic() >= deadline:
                raise TimeoutError(
                    f"Run {run_id} still '{run.status}' after "
                    f"{self._settings.run_poll_timeout_seconds}s"
                )
            logger.debug("Run %s status: %s", run_id, run.status)
            await asyncio.sleep(self._settings.run_poll_interval_seconds)

    async def fetch_response(self, run_id: str, thread_id: str) -> str:
        """Wait for the run to finish and return the newest assistant reply.

        Raises:
            RunFailedError: Run ended failed, cancelled, expired or incomplete.
            EmptyResponseError: Run completed without assistant text.
            TimeoutError: Run did not finish within run_poll_timeout_seconds.
        """
        status = await self._wait_for_run(run_id, thread_id)
        if status != "completed":
            raise RunFailedError(run_id, status)

        page = await self._client.beta.threads.messages.list(
            thread_id=thread_id,
            run_id=run_id,
            order="desc",
        )
        for message in page.data:
            if message.role == "assistant":
                text = _message_text(message)
                if text:
                    return text
        raise EmptyResponseError(run_id)

    async def submit_message(self, content: str, thread_id: str) -> str | None:
        message = await self._client.beta.threads.messages.create(
            thread_id=thread_id,
            role="user",
            content=content,
        )
        return message.id
