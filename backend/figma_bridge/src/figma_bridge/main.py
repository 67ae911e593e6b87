import asyncio
import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from figma_bridge.config import settings
from figma_bridge.errors import SessionError
from figma_bridge.models.schemas import DesignSpec
from figma_bridge.service.websocket import HandoffSession, SessionEvents
from figma_bridge.service.websocket import router as websocket_router

logger = logging.getLogger(settings.SERVICE_NAME + ".main")

# --- OpenAPI Metadata ---
API_TITLE = "Figma Bridge - Design Handoff Server"
API_VERSION_MAIN = "0.1.0"
API_DESCRIPTION = (
    "Serves one design spec to a single design-tool consumer over a WebSocket "
    "and relays its build progress back to the exporting process."
)


def create_app(session: HandoffSession) -> FastAPI:
    """
    Factory function to create the FastAPI application serving one handoff session.
    """
    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION_MAIN,
        description=API_DESCRIPTION,
        default_response_class=JSONResponse,
    )
    app.state.session = session

    @app.get("/healthz", tags=["Health"])
    async def health_check():
        return {
            "status": "ok",
            "service": settings.SERVICE_NAME,
            "session_state": session.state.value,
        }

    app.include_router(websocket_router, tags=["Handoff WebSocket"])
    return app


class HandoffServer:
    """Runs the handoff app under uvicorn inside the current event loop."""

    def __init__(self, session: HandoffSession, host: Optional[str] = None, port: Optional[int] = None):
        self.session = session
        self.host = host or settings.WS_HOST
        self.port = settings.WS_PORT if port is None else port
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}/"

    async def start(self) -> None:
        config = uvicorn.Config(
            create_app(self.session),
            host=self.host,
            port=self.port,
            log_level=settings.LOG_LEVEL.lower(),
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve())

        while not self._server.started:
            if self._task.done():
                self._task.result()
                raise SessionError(f"WebSocket server failed to start on {self.host}:{self.port}")
            await asyncio.sleep(0.01)

        # Port 0 asks the OS for a free port
        self.port = self._server.servers[0].sockets[0].getsockname()[1]
        logger.info(f"WebSocket server listening on {self.url}")

    async def stop(self) -> None:
        if self._server is None or self._task is None:
            return
        self._server.should_exit = True
        await self._task
        logger.info("WebSocket server stopped.")


async def serve_design_spec(
    spec: DesignSpec,
    events: Optional[SessionEvents] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    timeout_s: Optional[float] = None,
) -> None:
    """
    Serve ``spec`` to the first consumer that connects and wait for the
    session to end. Returns on ``complete``; raises the SessionError it
    ended with otherwise.
    """
    session = HandoffSession(spec, events, timeout_s)
    server = HandoffServer(session, host, port)
    await server.start()
    logger.info("Waiting for the design-tool plugin to connect...")
    try:
        await session.wait()
    finally:
        await server.stop()


if __name__ == "__main__":
    # Serves the example spec: python -m figma_bridge.main
    from figma_bridge.service.validator import validate_design_spec

    example = validate_design_spec(
        {
            "version": 1,
            "name": "Example",
            "width": 640,
            "height": 480,
            "nodes": [{"type": "text", "name": "title", "width": 200, "height": 24, "text": "Hello from Python"}],
        }
    )
    logger.info("Running the handoff server directly for development...")
    asyncio.run(serve_design_spec(example))
