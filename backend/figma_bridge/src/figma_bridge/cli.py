import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import settings
from .errors import FigmaBridgeError
from .main import serve_design_spec
from .models.schemas import DesignSpec
from .service.figma_keys import FigmaKeyExtractor, merge_component_keys
from .service.validator import count_nodes, parse_design_spec_text
from .service.websocket import SessionEvents

logger = logging.getLogger(settings.SERVICE_NAME + ".cli")


class ConsoleEvents(SessionEvents):
    """Prints session events for the person running the export."""

    def on_connected(self) -> None:
        print("  Plugin connected! Sending design spec...")

    def on_progress(self, message: str, progress: Optional[float]) -> None:
        pct = f" ({progress:g}%)" if progress is not None else ""
        print(f"  {message}{pct}")

    def on_complete(self) -> None:
        print("\n  Design created successfully in Figma!")

    def on_error(self, message: str) -> None:
        print(f"\n  Plugin error: {message}", file=sys.stderr)


def load_spec_file(path: str) -> DesignSpec:
    return parse_design_spec_text(Path(path).read_text(encoding="utf-8"))


async def _serve(spec: DesignSpec, port: int) -> None:
    print(f"\n  Open Figma -> Plugins -> React to Figma -> Connect to ws://localhost:{port}\n")
    await serve_design_spec(spec, ConsoleEvents(), port=port)


async def run_export(args: argparse.Namespace) -> None:
    # Imported here so the consumer-only commands work without a browser or API key
    from .service.analyzer import DesignAnalyzer
    from .service.code_reader import read_project_code
    from .service.screenshot import capture_screenshot

    print("\n[1/4] Capturing screenshot...")
    screenshot = await capture_screenshot(args.url, args.width, args.height)
    print(
        f"  Screenshot captured: {screenshot.viewport_width}x{screenshot.viewport_height} "
        f"(page height: {screenshot.page_height}px)"
    )

    print("\n[2/4] Reading project code...")
    code = read_project_code(args.project)
    print(f"  Found {len(code.files)} relevant files")
    print(f"  Detected {len(code.component_usages)} shadcn component usages")

    print("\n[3/4] Analyzing screenshot and code...")
    spec = await DesignAnalyzer().analyze(screenshot, code)
    print(f'  Generated DesignSpec: "{spec.name}" with {len(spec.nodes)} top-level nodes')

    print("\n[4/4] Starting WebSocket server...")
    await _serve(spec, args.port)


async def run_serve(args: argparse.Namespace) -> None:
    spec = load_spec_file(args.file)
    print(f'Serving DesignSpec "{spec.name}" ({count_nodes(spec.nodes)} nodes)')
    await _serve(spec, args.port)


async def run_build(args: argparse.Namespace) -> None:
    from .service.consumer import ConsumerClient
    from .utils.canvas import InMemoryCanvas

    canvas = InMemoryCanvas()
    result = await ConsumerClient(args.url, canvas).run()
    print(f"Built {result.visited}/{result.total_nodes} nodes on page {result.page.name!r}")
    if result.failed:
        print(f"  Skipped nodes: {', '.join(result.failed)}")

    exported = json.dumps(canvas.export_page(result.page), indent=2)
    if args.output:
        Path(args.output).write_text(exported, encoding="utf-8")
        print(f"Page written to {args.output}")
    else:
        print(exported)


async def run_extract_keys(args: argparse.Namespace) -> None:
    published = await FigmaKeyExtractor().extract(args.file_key)
    print(f"Found {len(published)} components/sets.\n")

    table = {name: asset.model_dump() for name, asset in published.items()}
    exported = json.dumps(table, indent=2)
    if args.output:
        Path(args.output).write_text(exported, encoding="utf-8")
        print(f"Keys written to {args.output}")
    else:
        print(exported)

    if args.merge:
        map_path = Path(args.map) if args.map else settings.get_absolute_component_map_path()
        updated = merge_component_keys(map_path, published)
        print(f"\nUpdated {len(updated)} entries in {map_path}")
        for name in updated:
            print(f"  {name}: {published[name].key} ({published[name].type})")


def run_validate(args: argparse.Namespace) -> None:
    spec = load_spec_file(args.file)
    print(f'Valid DesignSpec "{spec.name}" ({spec.width:g}x{spec.height:g})')
    print(f"  Top-level nodes: {len(spec.nodes)}")
    print(f"  Total nodes: {count_nodes(spec.nodes)}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="figma_bridge",
        description="Convert a running React/shadcn app into a Figma design",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    export = subparsers.add_parser("export", help="Capture, analyze and serve a running app")
    export.add_argument("--url", required=True, help="URL of the running React app")
    export.add_argument("--project", required=True, help="Path to the React project source")
    export.add_argument("--port", type=int, default=settings.WS_PORT, help="WebSocket server port")
    export.add_argument("--width", type=int, default=settings.VIEWPORT_WIDTH, help="Viewport width")
    export.add_argument("--height", type=int, default=settings.VIEWPORT_HEIGHT, help="Viewport height")

    serve = subparsers.add_parser("serve", help="Serve an existing design spec file to the plugin")
    serve.add_argument("file", help="Design spec JSON file")
    serve.add_argument("--port", type=int, default=settings.WS_PORT, help="WebSocket server port")

    build = subparsers.add_parser("build", help="Act as the plugin: receive a spec and build it in memory")
    build.add_argument("--url", default=f"ws://{settings.WS_HOST}:{settings.WS_PORT}/", help="Server URL")
    build.add_argument("--output", help="Write the built page as JSON to this file")

    validate = subparsers.add_parser("validate", help="Validate a design spec file")
    validate.add_argument("file", help="Design spec JSON file")

    extract = subparsers.add_parser("extract-keys", help="Fetch published component keys from a Figma library file")
    extract.add_argument("--file-key", default=settings.FIGMA_FILE_KEY, help="Figma library file key")
    extract.add_argument("--output", help="Write the key table as JSON to this file")
    extract.add_argument("--merge", action="store_true", help="Write matching keys into the component map")
    extract.add_argument("--map", help="Component map file to merge into (defaults to COMPONENT_MAP_FILE_PATH)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        if args.command == "export":
            asyncio.run(run_export(args))
        elif args.command == "serve":
            asyncio.run(run_serve(args))
        elif args.command == "build":
            asyncio.run(run_build(args))
        elif args.command == "validate":
            run_validate(args)
        elif args.command == "extract-keys":
            asyncio.run(run_extract_keys(args))
    except (FigmaBridgeError, OSError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"\nError: {e}", file=sys.stderr)
        return 1
    return 0
