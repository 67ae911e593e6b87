"""Serve a small design and build it with the in-memory consumer in one process."""

import asyncio
import json

from figma_bridge.main import HandoffServer
from figma_bridge.service.consumer import ConsumerClient
from figma_bridge.service.validator import validate_design_spec
from figma_bridge.service.websocket import HandoffSession
from figma_bridge.utils.canvas import InMemoryCanvas

EXAMPLE_SPEC = {
    "version": 1,
    "name": "Login",
    "width": 480,
    "height": 360,
    "nodes": [
        {
            "type": "frame",
            "name": "card",
            "x": 40,
            "y": 40,
            "width": 400,
            "height": 280,
            "cornerRadius": 12,
            "fills": [{"type": "SOLID", "color": {"r": 1, "g": 1, "b": 1}}],
            "strokes": [{"type": "SOLID", "color": {"r": 0.9, "g": 0.9, "b": 0.92}}],
            "autoLayout": {"mode": "VERTICAL", "spacing": 16, "paddingTop": 24, "paddingLeft": 24},
            "children": [
                {
                    "type": "text",
                    "name": "title",
                    "width": 200,
                    "height": 32,
                    "text": "Sign in",
                    "textStyle": {"fontSize": 24, "fontWeight": 600},
                },
                {
                    "type": "shadcn-component",
                    "name": "submit",
                    "width": 120,
                    "height": 40,
                    "componentName": "Button",
                    "componentProps": {"variant": "default"},
                    "textContent": "Continue",
                },
            ],
        }
    ],
}


async def main():
    session = HandoffSession(validate_design_spec(EXAMPLE_SPEC), timeout_s=30)
    server = HandoffServer(session, port=0)
    await server.start()

    canvas = InMemoryCanvas()
    try:
        result, _ = await asyncio.gather(ConsumerClient(server.url, canvas).run(), session.wait())
    finally:
        await server.stop()

    print(f"Built {result.visited}/{result.total_nodes} nodes, session {session.state.value}")
    print(json.dumps(canvas.export_page(result.page), indent=2))


if __name__ == "__main__":
    asyncio.run(main())
