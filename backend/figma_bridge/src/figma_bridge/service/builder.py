"""
Recursive tree builder.

Walks a validated DesignSpec in pre-order, depth-first, strictly in input
order, and constructs canvas nodes for it. Every node is fully awaited before
its next sibling starts, so z-order and progress order both match the design spec.

Progress reporting keeps the level-local percentages the Figma plugin has
always sent: the top-level call reports against the whole tree, while a
nested frame reports against the length of its own ``children`` list. Nested
counters still feed the top-level tally, so the final top-level report is
always 100.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from ..config import settings
from ..errors import BuildError, NodeConstructionError
from ..models.schemas import (
    Color,
    DesignSpec,
    FrameNode,
    ImageNode,
    Paint,
    RectangleNode,
    ShadcnComponentNode,
    Stroke,
    TextNode,
)
from ..utils.attempt import attempt_async
from ..utils.canvas import (
    DEFAULT_FONT,
    RGB,
    Canvas,
    ContainerNode,
    FontName,
    PageNode,
    SceneNode,
    SolidPaint,
)
from ..utils.canvas import FrameNode as SceneFrame
from ..utils.loader import get_component_map_loader
from .components import ComponentResolver
from .validator import count_nodes

logger = logging.getLogger(settings.SERVICE_NAME + ".builder")

ProgressReporter = Callable[[str, int], Awaitable[None]]

DEFAULT_PAGE_NAME = "React to Figma Import"
IMAGE_PLACEHOLDER_COLOR = RGB(0.9, 0.9, 0.92)

WEIGHT_TO_STYLE: Dict[int, str] = {
    100: "Thin",
    200: "Extra Light",
    300: "Light",
    400: "Regular",
    500: "Medium",
    600: "Semi Bold",
    700: "Bold",
    800: "Extra Bold",
    900: "Black",
}


def weight_to_style(weight: int) -> str:
    return WEIGHT_TO_STYLE.get(weight, "Regular")


def percent(done: int, total: int) -> int:
    """Whole-number percentage, rounding halves up."""
    if total <= 0:
        return 100
    return int(math.floor(done / total * 100 + 0.5))


def to_solid_paint(paint: Paint) -> SolidPaint:
    return SolidPaint(RGB(paint.color.r, paint.color.g, paint.color.b), opacity=paint.color.a)


def color_paint(color: Color) -> SolidPaint:
    return SolidPaint(RGB(color.r, color.g, color.b), opacity=color.a)


class ProgressCounter:
    """
    Counts visited nodes. The top-level counter is owned by the build and
    lent down the recursion; each nested level gets a child counter whose
    ``value`` is local to that level while every increment also lands on the
    root tally.
    """

    def __init__(self, root: Optional["ProgressCounter"] = None):
        self.value = 0
        self.root: ProgressCounter = root if root is not None else self

    @property
    def is_root(self) -> bool:
        return self.root is self

    def nested(self) -> "ProgressCounter":
        return ProgressCounter(root=self.root)

    def increment(self) -> None:
        self.value += 1
        if not self.is_root:
            self.root.value += 1

    def account_for(self, count: int) -> None:
        """Record descendants that were never visited (their parent was skipped)."""
        self.root.value += count


@dataclass
class BuildResult:
    page: PageNode
    root: SceneFrame
    total_nodes: int
    visited: int
    failed: List[str] = field(default_factory=list)


class NodeBuilder:
    """Builds canvas nodes for design nodes, one node type per builder method."""

    def __init__(
        self,
        canvas: Canvas,
        resolver: ComponentResolver,
        reporter: Optional[ProgressReporter] = None,
    ):
        self.canvas = canvas
        self.resolver = resolver
        self.reporter = reporter
        self.failed: List[str] = []
        self._builders: Dict[str, Callable[[Any, ProgressCounter], Awaitable[Optional[SceneNode]]]] = {
            "frame": self._build_frame,
            "shadcn-component": self._build_component,
            "text": self._build_text,
            "rectangle": self._build_rectangle,
            "image": self._build_image,
        }

    async def report(self, message: str, progress: int) -> None:
        if self.reporter is None:
            return
        try:
            await self.reporter(message, progress)
        except Exception as e:
            raise BuildError(f"Progress reporting failed: {e}") from e

    async def build_nodes(
        self,
        nodes: Sequence[Any],
        parent: ContainerNode,
        total: int,
        counter: ProgressCounter,
    ) -> None:
        for node in nodes:
            scene_node = await self.build_node(node, counter)
            if scene_node is not None:
                parent.append_child(scene_node)

            counter.increment()
            await self.report(f"Building: {getattr(node, 'name', '?')}", percent(counter.value, total))

    async def build_node(self, node: Any, counter: ProgressCounter) -> Optional[SceneNode]:
        node_type = getattr(node, "type", None)
        builder = self._builders.get(node_type)
        if builder is None:
            logger.warning(f"Skipping node {getattr(node, 'name', '?')!r} with unsupported type {node_type!r}")
            return None
        try:
            return await builder(node, counter)
        except BuildError:
            raise
        except Exception as e:
            logger.error(f"Failed to build {node_type} node {node.name!r}, skipping it: {e}", exc_info=True)
            self.failed.append(node.name)
            counter.account_for(count_nodes(getattr(node, "children", None)))
            return None

    # --- Per-type builders ---
    def _apply_common(self, scene_node: SceneNode, node: Any) -> None:
        scene_node.name = node.name
        scene_node.x = node.x
        scene_node.y = node.y
        scene_node.resize(node.width, node.height)
        scene_node.opacity = node.opacity
        scene_node.visible = node.visible

    def _apply_paints(self, scene_node: Any, fills: List[Paint], strokes: List[Stroke]) -> None:
        scene_node.fills = [to_solid_paint(f) for f in fills]
        if strokes:
            scene_node.strokes = [to_solid_paint(s) for s in strokes]
            # One weight for all strokes
            scene_node.stroke_weight = strokes[0].weight

    async def _build_frame(self, node: FrameNode, counter: ProgressCounter) -> SceneFrame:
        frame = self.canvas.create_frame()
        self._apply_common(frame, node)
        if node.corner_radius is not None:
            frame.corner_radius = node.corner_radius
        self._apply_paints(frame, node.fills, node.strokes)

        layout = node.auto_layout
        if layout is not None:
            frame.layout_mode = layout.mode
            frame.item_spacing = layout.spacing
            frame.padding_top = layout.padding_top
            frame.padding_right = layout.padding_right
            frame.padding_bottom = layout.padding_bottom
            frame.padding_left = layout.padding_left
            frame.primary_axis_align_items = layout.primary_axis_align_items
            frame.counter_axis_align_items = layout.counter_axis_align_items
            frame.primary_axis_sizing_mode = layout.primary_axis_sizing_mode
            frame.counter_axis_sizing_mode = layout.counter_axis_sizing_mode

        if node.children:
            await self.build_nodes(node.children, frame, len(node.children), counter.nested())
        return frame

    async def _build_component(self, node: ShadcnComponentNode, counter: ProgressCounter) -> SceneNode:
        scene_node = await self.resolver.resolve(node)
        if node.children:
            # Instances bring their own content, nested spec children are not built.
            counter.account_for(count_nodes(node.children))
        return scene_node

    async def _build_text(self, node: TextNode, counter: ProgressCounter) -> SceneNode:
        text = self.canvas.create_text()
        style = node.text_style
        font = FontName(style.font_family or DEFAULT_FONT.family, weight_to_style(style.font_weight))

        loaded = await attempt_async(self.canvas.load_font, font)
        if not loaded.ok:
            logger.warning(f"Font {font.family} {font.style} unavailable for {node.name!r}, using Inter Regular: {loaded.error}")
            font = DEFAULT_FONT
            fallback = await attempt_async(self.canvas.load_font, font)
            if not fallback.ok:
                raise NodeConstructionError(f"No usable font for text node {node.name!r}") from fallback.error

        text.font_name = font
        # Characters go in before the resize so auto-sizing cannot undo it
        text.characters = node.text
        text.font_size = style.font_size
        if style.line_height is not None:
            text.line_height = {"value": style.line_height, "unit": "PIXELS"}
        if style.letter_spacing is not None:
            text.letter_spacing = {"value": style.letter_spacing, "unit": "PIXELS"}
        text.text_align_horizontal = style.text_align_horizontal
        if style.color is not None:
            text.fills = [color_paint(style.color)]

        self._apply_common(text, node)
        return text

    async def _build_rectangle(self, node: RectangleNode, counter: ProgressCounter) -> SceneNode:
        rect = self.canvas.create_rectangle()
        self._apply_common(rect, node)
        if node.corner_radius is not None:
            rect.corner_radius = node.corner_radius
        self._apply_paints(rect, node.fills, node.strokes)
        return rect

    async def _build_image(self, node: ImageNode, counter: ProgressCounter) -> SceneNode:
        # No image decoding: a frame stands in for the picture
        frame = self.canvas.create_frame()
        self._apply_common(frame, node)
        if node.corner_radius is not None:
            frame.corner_radius = node.corner_radius
        if node.fills:
            frame.fills = [to_solid_paint(f) for f in node.fills]
        else:
            frame.fills = [SolidPaint(IMAGE_PLACEHOLDER_COLOR)]
        return frame


async def build_design(
    spec: DesignSpec,
    canvas: Canvas,
    reporter: Optional[ProgressReporter] = None,
    resolver: Optional[ComponentResolver] = None,
) -> BuildResult:
    """
    Build a whole DesignSpec onto a new page of ``canvas``.

    Per-node failures are logged and skipped. Anything that stops the build
    itself (page or root frame creation, progress reporting) raises BuildError.
    """
    if resolver is None:
        resolver = ComponentResolver(canvas, get_component_map_loader().get_component_map())
    builder = NodeBuilder(canvas, resolver, reporter)

    try:
        await builder.report("Starting build...", 0)

        page = canvas.create_page()
        page.name = spec.name or DEFAULT_PAGE_NAME
        canvas.set_current_page(page)

        root = canvas.create_frame()
        root.name = spec.name
        root.resize(spec.width, spec.height)
        root.x = 0
        root.y = 0
        root.fills = [color_paint(spec.background_color)]

        total = count_nodes(spec.nodes)
        counter = ProgressCounter()
        logger.info(f"Building design {spec.name!r} with {total} nodes")
        await builder.build_nodes(spec.nodes, root, total, counter)

        page.append_child(root)
        canvas.focus([root])
    except BuildError:
        raise
    except Exception as e:
        logger.error(f"Build of {spec.name!r} aborted: {e}", exc_info=True)
        raise BuildError(str(e)) from e

    if builder.failed:
        logger.warning(f"{len(builder.failed)} node(s) could not be built: {builder.failed}")
    logger.info(f"Design {spec.name!r} built: {counter.value}/{total} nodes visited")
    return BuildResult(page=page, root=root, total_nodes=total, visited=counter.value, failed=builder.failed)
