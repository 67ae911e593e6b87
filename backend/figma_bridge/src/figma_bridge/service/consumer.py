"""
Consumer side of the handoff protocol.

Plays the part of the design-tool plugin: connects to the exporting process,
announces itself, receives the design spec, builds it onto a canvas and
streams progress, completion or failure back over the same connection.
"""

import json
import logging
from typing import Optional

import websockets
from websockets.exceptions import ConnectionClosed

from ..config import settings
from ..errors import BuildError, DesignSpecValidationError, SessionError
from ..models.schemas import DesignSpec, SessionStatus, StatusMessage, StatusPayload, dump_message
from ..utils.canvas import Canvas, InMemoryCanvas
from ..utils.loader import get_component_map_loader
from .builder import BuildResult, build_design
from .components import ComponentResolver
from .validator import validate_design_spec

logger = logging.getLogger(settings.SERVICE_NAME + ".consumer")


class ConsumerClient:
    def __init__(
        self,
        url: Optional[str] = None,
        canvas: Optional[Canvas] = None,
        resolver: Optional[ComponentResolver] = None,
    ):
        self.url = url or f"ws://{settings.WS_HOST}:{settings.WS_PORT}/"
        self.canvas = canvas if canvas is not None else InMemoryCanvas()
        self.resolver = resolver
        self._ws = None

    async def send_status(
        self,
        status: SessionStatus,
        message: Optional[str] = None,
        progress: Optional[float] = None,
    ) -> None:
        envelope = StatusMessage(payload=StatusPayload(status=status, message=message, progress=progress))
        await self._ws.send(dump_message(envelope))

    async def run(self) -> BuildResult:
        """
        Connect, build the design spec the server sends and report the outcome.
        Raises SessionError if the connection ends before a spec arrives.
        """
        logger.info(f"Connecting to {self.url}")
        async with websockets.connect(self.url, max_size=None) as ws:
            self._ws = ws
            try:
                await self.send_status("connected", "Plugin connected")
                async for raw in ws:
                    try:
                        spec = self._parse_spec_message(raw)
                    except DesignSpecValidationError as e:
                        logger.error(f"Rejecting invalid design spec: {e}")
                        await self.send_status("error", str(e))
                        raise
                    if spec is not None:
                        return await self._build(spec)
            except ConnectionClosed as e:
                raise SessionError(f"Connection closed by the server: {e}") from e
            finally:
                self._ws = None
        raise SessionError("Connection closed before a design spec was received")

    def _parse_spec_message(self, raw) -> Optional[DesignSpec]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring non-JSON message: {str(raw)[:200]}")
            return None
        if not isinstance(data, dict) or data.get("type") != "design-spec":
            logger.debug(f"Ignoring message of type {data.get('type') if isinstance(data, dict) else type(data)!r}")
            return None
        return validate_design_spec(data.get("payload"))

    async def _build(self, spec: DesignSpec) -> BuildResult:
        logger.info(f"Received design spec {spec.name!r}, building...")
        resolver = self.resolver or ComponentResolver(
            self.canvas, get_component_map_loader().get_component_map()
        )

        async def report(message: str, progress: int) -> None:
            await self.send_status("progress", message, progress)

        try:
            result = await build_design(spec, self.canvas, report, resolver)
        except BuildError as e:
            await self.send_status("error", str(e))
            raise

        await self.send_status("complete", "Design created")
        return result
