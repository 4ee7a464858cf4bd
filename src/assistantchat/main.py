import asyncio
import base64
import binascii
import json
import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Tuple

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from .backend import AssistantBackend, OpenAIAssistantBackend
from .models import AssistantDetails, Message
from .services.chat_manager import ChatManager
from .settings import get_settings


def setup_server_logging() -> logging.Logger:
    """Configure and return the server logger."""
    logs_dir = Path("logs")
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("assistantchat")
    if logger.handlers:
        return logger

    logger.setLevel(get_settings().log_level)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    fh = RotatingFileHandler(logs_dir / "server.log", maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    return logger


def _cors_origins_list(origins: str) -> list[str]:
    """Parse CORS_ORIGINS into a list."""
    if not origins or origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in origins.split(",") if o.strip()]


LOGGER = setup_server_logging()
settings = get_settings()

_BACKEND: AssistantBackend | None = None


def get_backend() -> AssistantBackend:
    """Return the shared assistant backend, creating it on first use."""
    global _BACKEND
    if _BACKEND is None:
        _BACKEND = OpenAIAssistantBackend()
    return _BACKEND


@asynccontextmanager
async def lifespan(app: FastAPI):
    LOGGER.info("Assistant chat server starting (model=%s)", settings.model)
    if not settings.openai_api_key:
        LOGGER.warning("OPENAI_API_KEY is not set; assistant calls will fail")
    yield
    LOGGER.info("Shutting down...")


app = FastAPI(
    title="Assistant Chat",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health() -> dict[str, Any]:
    """Health check for load balancers and monitoring."""
    return {"status": "ok"}


async def _pump(websocket: WebSocket, queue: "asyncio.Queue[Dict[str, Any]]") -> None:
    """Forward queued frames to the socket in order."""
    while True:
        frame = await queue.get()
        await websocket.send_json(frame)
        queue.task_done()


def _log_pump_exit(task: "asyncio.Task[None]") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        LOGGER.error("WS frame pump stopped: %s", exc)


def _decode_file(spec: Any) -> Tuple[str, bytes] | None:
    """Decode an uploaded {name, content_base64} object into (filename, bytes).

    Raises:
        ValueError: The object is malformed or the content is not base64.
    """
    if spec is None:
        return None
    if not isinstance(spec, dict):
        raise ValueError("file must be an object")
    name = Path(str(spec.get("name") or "")).name
    content = spec.get("content_base64")
    if not name or not isinstance(content, str):
        raise ValueError("file needs a name and content_base64")
    try:
        return (name, base64.b64decode(content, validate=True))
    except binascii.Error as e:
        raise ValueError(f"file content is not valid base64: {e}") from e


@app.websocket("/ws/chat")
async def chat_ws(websocket: WebSocket) -> None:
    """WebSocket chat endpoint driving one assistant session per connection.

    Files travel inside the frame; server paths are never accepted.

    Expected Input (JSON), any number of frames:
        {"type": "start", "assistant": {...}, "initial_message": str,
         "file": {"name": str, "content_base64": str} | null}
        {"type": "message", "message": str}

    Response Format:
        - {"type": "status", "data": str} - bootstrap phase label
        - {"type": "messages", "data": [{"role": str, "content": str}, ...]} - full log
        - {"type": "done", "ok": bool, "error": str | null} - workflow settled
        - {"type": "error", "data": str} - malformed request
    """
    await websocket.accept()
    queue: asyncio.Queue[Dict[str, Any]] = asyncio.Queue()

    def message_sink(messages: List[Message]) -> None:
        queue.put_nowait({"type": "messages", "data": [m.to_dict() for m in messages]})

    def status_sink(text: str) -> None:
        queue.put_nowait({"type": "status", "data": text})

    manager = ChatManager(get_backend(), message_sink, status_sink)
    pump = asyncio.create_task(_pump(websocket, queue))
    pump.add_done_callback(_log_pump_exit)
    LOGGER.info("WS chat session opened")

    try:
        while True:
            raw = await websocket.receive_text()
            if pump.done():
                LOGGER.warning("WS frame pump is gone; closing session")
                break
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError as e:
                LOGGER.error("Invalid WS payload (not JSON): %s", e)
                queue.put_nowait({"type": "error", "data": "Invalid JSON payload"})
                continue
            if not isinstance(payload, dict):
                LOGGER.error("Invalid WS payload (not an object): %r", payload)
                queue.put_nowait({"type": "error", "data": "Invalid JSON payload"})
                continue

            kind = payload.get("type")
            if kind == "start":
                if "file_path" in payload:
                    LOGGER.warning("Rejected start frame carrying a server file path")
                    queue.put_nowait(
                        {"type": "error", "data": "file_path is not accepted; send file content"}
                    )
                    continue
                try:
                    details = AssistantDetails.model_validate(payload.get("assistant") or {})
                except ValidationError as e:
                    queue.put_nowait({"type": "error", "data": f"Invalid assistant: {e}"})
                    continue
                try:
                    file = _decode_file(payload.get("file"))
                except ValueError as e:
                    queue.put_nowait({"type": "error", "data": f"Invalid file: {e}"})
                    continue
                result = await manager.start_assistant(
                    details,
                    file,
                    str(payload.get("initial_message") or ""),
                )
            elif kind == "message":
                message = str(payload.get("message") or "").strip()
                if not message:
                    queue.put_nowait({"type": "error", "data": "Empty message"})
                    continue
                result = await manager.send_message(message)
            else:
                queue.put_nowait({"type": "error", "data": f"Unknown frame type: {kind!r}"})
                continue

            queue.put_nowait(
                {
                    "type": "done",
                    "ok": result.ok,
                    "error": str(result.error) if result.error else None,
                }
            )

    except WebSocketDisconnect:
        LOGGER.info("WS disconnect")
    except (ConnectionError, RuntimeError) as e:
        LOGGER.exception("Unexpected WS error: %s", e)
        try:
            await websocket.close()
        except (OSError, RuntimeError):
            pass
    finally:
        pump.cancel()
        try:
            await pump
        except asyncio.CancelledError:
            pass
        except (WebSocketDisconnect, OSError, RuntimeError):
            # already reported by _log_pump_exit
            pass
