import asyncio
import logging
from enum import Enum
from typing import Optional

from fastapi import APIRouter, WebSocket, status
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from ..config import settings
from ..errors import (
    ConsumerDisconnectedError,
    ConsumerReportedError,
    SessionError,
    SessionTimeoutError,
)
from ..models.schemas import DesignSpec, DesignSpecMessage, StatusMessage, dump_message, websocket_message_adapter

logger = logging.getLogger(settings.SERVICE_NAME + ".websocket")
router = APIRouter()

DEFAULT_PROGRESS_MESSAGE = "Building..."
DEFAULT_ERROR_MESSAGE = "Unknown plugin error"


class SessionState(str, Enum):
    LISTENING = "listening"
    CONNECTED = "connected"
    SPEC_SENT = "spec_sent"
    BUILDING = "building"
    COMPLETE = "complete"
    ERROR = "error"
    DISCONNECTED = "disconnected"
    TIMED_OUT = "timed_out"


TERMINAL_STATES = frozenset(
    {SessionState.COMPLETE, SessionState.ERROR, SessionState.DISCONNECTED, SessionState.TIMED_OUT}
)


class SessionEvents:
    """Callbacks for the process that started the session. The defaults do nothing."""

    def on_connected(self) -> None:
        pass

    def on_progress(self, message: str, progress: Optional[float]) -> None:
        pass

    def on_complete(self) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass


async def close_websocket(websocket: WebSocket, reason: Optional[str] = None) -> None:
    """Close a websocket unless either side already has."""
    if (
        websocket.application_state == WebSocketState.DISCONNECTED
        or websocket.client_state == WebSocketState.DISCONNECTED
    ):
        return
    try:
        await websocket.close(code=status.WS_1000_NORMAL_CLOSURE, reason=reason)
    except (RuntimeError, OSError) as e:  # Can happen if the client closed in the meantime
        logger.debug(f"Error closing WebSocket (likely already closed): {e}")


class HandoffSession:
    """
    One design handoff: a single consumer connects, announces itself, receives
    the design spec and streams status back until the build completes or fails.

    Exactly one terminal state is ever reached. Everything that happens after
    it (late progress, a close following ``complete``) is ignored.
    """

    def __init__(
        self,
        spec: DesignSpec,
        events: Optional[SessionEvents] = None,
        timeout_s: Optional[float] = None,
    ):
        self.spec = spec
        self.events = events or SessionEvents()
        self.timeout_s = settings.SESSION_TIMEOUT_S if timeout_s is None else timeout_s
        self.state = SessionState.LISTENING
        self.consumer: Optional[WebSocket] = None
        self.consumer_seen = False
        self.error: Optional[SessionError] = None
        self._spec_sent = False
        self._done = asyncio.Event()

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    async def attach(self, websocket: WebSocket) -> bool:
        """
        Accept a consumer connection. A second connection while one is active
        (or once the session has ended) is closed straight away.
        """
        await websocket.accept()
        if self.consumer is not None or self.done:
            logger.warning("Rejecting additional consumer connection: already connected")
            await close_websocket(websocket, reason="Already connected")
            return False

        self.consumer = websocket
        self.consumer_seen = True
        self.state = SessionState.CONNECTED
        logger.info("Consumer connected, waiting for its 'connected' status")
        return True

    async def handle_text(self, text: str) -> None:
        if self.done:
            logger.debug(f"Session already {self.state.value}, ignoring message")
            return

        try:
            message = websocket_message_adapter.validate_json(text)
        except ValidationError as e:
            logger.warning(f"Dropping malformed consumer message: {e.error_count()} error(s), first: {e.errors()[0]['msg']}")
            return

        if not isinstance(message, StatusMessage):
            logger.warning(f"Ignoring unexpected '{message.type}' message from consumer")
            return

        payload = message.payload
        if payload.status == "connected":
            await self._send_spec()
        elif payload.status in ("building", "progress"):
            self.state = SessionState.BUILDING
            self.events.on_progress(payload.message or DEFAULT_PROGRESS_MESSAGE, payload.progress)
        elif payload.status == "complete":
            self.events.on_complete()
            self._resolve(SessionState.COMPLETE)
        elif payload.status == "error":
            consumer_message = payload.message or DEFAULT_ERROR_MESSAGE
            self.events.on_error(consumer_message)
            self._resolve(SessionState.ERROR, ConsumerReportedError(consumer_message))

    async def _send_spec(self) -> None:
        if self._spec_sent:
            logger.debug("Consumer announced itself again, design spec already sent")
            return
        if self.consumer is None:
            logger.warning("Received 'connected' without an attached consumer")
            return
        self.events.on_connected()
        await self.consumer.send_text(dump_message(DesignSpecMessage(payload=self.spec)))
        self._spec_sent = True
        self.state = SessionState.SPEC_SENT
        logger.info(f"Design spec {self.spec.name!r} sent to consumer")

    def handle_disconnect(self, websocket: WebSocket) -> None:
        if websocket is not self.consumer:
            return
        self.consumer = None
        if not self.done:
            logger.error("Consumer disconnected before the build finished")
            self._resolve(SessionState.DISCONNECTED, ConsumerDisconnectedError())

    async def expire(self) -> None:
        """End the session with a timeout and close the consumer, if any."""
        if self._resolve(SessionState.TIMED_OUT, SessionTimeoutError(self.timeout_s, self.consumer_seen)):
            logger.error(f"No terminal status within {self.timeout_s}s, closing session")
            if self.consumer is not None:
                await close_websocket(self.consumer, reason="Session timed out")

    def _resolve(self, state: SessionState, error: Optional[SessionError] = None) -> bool:
        if self.done:
            return False
        self.state = state
        self.error = error
        self._done.set()
        logger.info(f"Session ended: {state.value}")
        return True

    async def wait(self) -> None:
        """
        Block until the session ends. Raises the SessionError it ended with;
        returns normally only on ``complete``.
        """
        try:
            await asyncio.wait_for(self._done.wait(), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            await self.expire()
        if self.error is not None:
            raise self.error


@router.websocket("/")
async def consumer_endpoint(websocket: WebSocket):
    session: HandoffSession = websocket.app.state.session
    if not await session.attach(websocket):
        return

    try:
        while not session.done:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"Consumer connection closed (code {message.get('code', status.WS_1000_NORMAL_CLOSURE)})")
                break
            text = message.get("text")
            if text is None:
                logger.warning("Dropping non-text frame from consumer")
                continue
            await session.handle_text(text)
    finally:
        session.handle_disconnect(websocket)
        await close_websocket(websocket)
