from pathlib import Path
from typing import BinaryIO, Protocol, Tuple, Union

from ..models import AssistantDetails

FileInput = Union[str, Path, Tuple[str, bytes], BinaryIO]


class AssistantBackend(Protocol):
    """Asynchronous operations the chat workflows depend on.

    Identifier-returning methods may return None when the backend completed
    without producing one; the caller treats that as a failure.
    """

    async def upload_file(self, file: FileInput) -> str | None: ...

    async def create_assistant(
        self, details: AssistantDetails, file_id: str | None
    ) -> str | None: ...

    async def create_thread(self, initial_message: str) -> str | None: ...

    async def run_assistant(self, assistant_id: str, thread_id: str) -> str | None: ...

    async def fetch_response(self, run_id: str, thread_id: str) -> str: ...

    async def submit_message(self, content: str, thread_id: str) -> str | None: ...
