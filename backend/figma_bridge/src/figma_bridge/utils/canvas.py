"""
In-memory design canvas.

This is the design-tool surface the Python consumer builds into. It mirrors
the parts of the Figma plugin API the builder relies on, including the
behaviours that shape how the builder has to be written:

- text properties can only be edited once the node's font has been loaded;
- text nodes auto-size whenever their characters change;
- new frames carry a default white fill, so "no fills" has to be explicit;
- instances reject variant properties their component does not define;
- library assets are imported asynchronously by key.

The built page can be exported as plain JSON.
"""

import copy
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Protocol, Set, Union

from ..config import settings
from ..errors import AssetImportError, FontLoadError

logger = logging.getLogger(settings.SERVICE_NAME + ".canvas")

_node_ids = itertools.count(1)


class FontName(NamedTuple):
    family: str
    style: str


DEFAULT_FONT = FontName("Inter", "Regular")

FONT_STYLES = (
    "Thin",
    "Extra Light",
    "Light",
    "Regular",
    "Medium",
    "Semi Bold",
    "Bold",
    "Extra Bold",
    "Black",
)


@dataclass(frozen=True)
class RGB:
    r: float
    g: float
    b: float


@dataclass(frozen=True)
class SolidPaint:
    color: RGB
    opacity: float = 1.0
    type: str = "SOLID"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "color": {"r": self.color.r, "g": self.color.g, "b": self.color.b},
            "opacity": self.opacity,
        }


class FontNotLoadedError(RuntimeError):
    def __init__(self, font: FontName):
        super().__init__(f"Cannot write to node with unloaded font \"{font.family} {font.style}\"")
        self.font = font


class FontRegistry:
    """Fonts the canvas can provide, and which of them have been loaded."""

    def __init__(self, available: Optional[Iterable[FontName]] = None):
        if available is None:
            available = [FontName("Inter", style) for style in FONT_STYLES]
        self.available: Set[FontName] = {FontName(*f) for f in available}
        self.loaded: Set[FontName] = set()

    async def load(self, font: FontName) -> None:
        font = FontName(*font)
        if font not in self.available:
            raise FontLoadError(f"The font \"{font.family} {font.style}\" could not be loaded")
        self.loaded.add(font)

    def require(self, font: FontName) -> None:
        if FontName(*font) not in self.loaded:
            raise FontNotLoadedError(FontName(*font))


# --- Scene Nodes ---
class SceneNode:
    node_type = "NODE"

    def __init__(self, name: str = ""):
        self.id = str(next(_node_ids))
        self.name = name
        self.x: float = 0.0
        self.y: float = 0.0
        self.width: float = 100.0
        self.height: float = 100.0
        self.opacity: float = 1.0
        self.visible: bool = True
        self.parent: Optional["ContainerNode"] = None

    def resize(self, width: float, height: float) -> None:
        if width < 0 or height < 0:
            raise ValueError(f"Invalid size {width}x{height} for node {self.name!r}")
        self.width = float(width)
        self.height = float(height)

    def remove(self) -> None:
        if self.parent is not None:
            self.parent.children.remove(self)
            self.parent = None

    def clone(self) -> "SceneNode":
        dup = copy.copy(self)
        dup.id = str(next(_node_ids))
        dup.parent = None
        return dup

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.node_type,
            "name": self.name,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "opacity": self.opacity,
            "visible": self.visible,
        }


class ContainerNode(SceneNode):
    def __init__(self, name: str = ""):
        super().__init__(name)
        self.children: List[SceneNode] = []

    def append_child(self, child: SceneNode) -> None:
        child.remove()
        child.parent = self
        self.children.append(child)

    def find_one(self, predicate: Callable[[SceneNode], bool]) -> Optional[SceneNode]:
        """Depth-first search of the descendants (not the node itself)."""
        for child in self.children:
            if predicate(child):
                return child
            if isinstance(child, ContainerNode):
                found = child.find_one(predicate)
                if found is not None:
                    return found
        return None

    def clone(self) -> "ContainerNode":
        dup = super().clone()
        dup.children = []
        for child in self.children:
            dup.append_child(child.clone())
        return dup

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["children"] = [child.to_dict() for child in self.children]
        return data


class GeometryMixin:
    """Paint and corner properties shared by frames, rectangles and instances."""

    def _init_geometry(self, fills: List[SolidPaint]) -> None:
        self.fills: List[SolidPaint] = fills
        self.strokes: List[SolidPaint] = []
        self.stroke_weight: float = 1.0
        self.corner_radius: float = 0.0

    def _geometry_dict(self) -> Dict[str, Any]:
        return {
            "fills": [p.to_dict() for p in self.fills],
            "strokes": [p.to_dict() for p in self.strokes],
            "strokeWeight": self.stroke_weight,
            "cornerRadius": self.corner_radius,
        }


class FrameNode(GeometryMixin, ContainerNode):
    node_type = "FRAME"

    def __init__(self, name: str = "Frame"):
        super().__init__(name)
        self._init_geometry([SolidPaint(RGB(1.0, 1.0, 1.0))])
        self.layout_mode: str = "NONE"
        self.item_spacing: float = 0.0
        self.padding_top: float = 0.0
        self.padding_right: float = 0.0
        self.padding_bottom: float = 0.0
        self.padding_left: float = 0.0
        self.primary_axis_align_items: str = "MIN"
        self.counter_axis_align_items: str = "MIN"
        self.primary_axis_sizing_mode: str = "FIXED"
        self.counter_axis_sizing_mode: str = "FIXED"

    def clone(self) -> "FrameNode":
        dup = super().clone()
        dup.fills = list(self.fills)
        dup.strokes = list(self.strokes)
        return dup

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(self._geometry_dict())
        if self.layout_mode != "NONE":
            data["layout"] = {
                "mode": self.layout_mode,
                "itemSpacing": self.item_spacing,
                "padding": [self.padding_top, self.padding_right, self.padding_bottom, self.padding_left],
                "primaryAxisAlignItems": self.primary_axis_align_items,
                "counterAxisAlignItems": self.counter_axis_align_items,
                "primaryAxisSizingMode": self.primary_axis_sizing_mode,
                "counterAxisSizingMode": self.counter_axis_sizing_mode,
            }
        return data


class RectangleNode(GeometryMixin, SceneNode):
    node_type = "RECTANGLE"

    def __init__(self, name: str = "Rectangle"):
        super().__init__(name)
        self._init_geometry([SolidPaint(RGB(0.85, 0.85, 0.85))])

    def clone(self) -> "RectangleNode":
        dup = super().clone()
        dup.fills = list(self.fills)
        dup.strokes = list(self.strokes)
        return dup

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(self._geometry_dict())
        return data


class TextNode(SceneNode):
    node_type = "TEXT"

    def __init__(self, fonts: FontRegistry, name: str = "Text"):
        super().__init__(name)
        self._fonts = fonts
        self._characters = ""
        self._font_name = DEFAULT_FONT
        self._font_size: float = 12.0
        self._line_height: Optional[Dict[str, Any]] = None
        self._letter_spacing: Optional[Dict[str, Any]] = None
        self.text_align_horizontal: str = "LEFT"
        self.text_auto_resize: str = "WIDTH_AND_HEIGHT"
        self.fills: List[SolidPaint] = [SolidPaint(RGB(0.0, 0.0, 0.0))]
        self.width = 0.0
        self.height = 0.0

    @property
    def characters(self) -> str:
        return self._characters

    @characters.setter
    def characters(self, value: str) -> None:
        self._fonts.require(self._font_name)
        self._characters = value
        if self.text_auto_resize == "WIDTH_AND_HEIGHT":
            self._auto_size()

    @property
    def font_name(self) -> FontName:
        return self._font_name

    @font_name.setter
    def font_name(self, value: FontName) -> None:
        value = FontName(*value)
        self._fonts.require(value)
        self._font_name = value

    @property
    def font_size(self) -> float:
        return self._font_size

    @font_size.setter
    def font_size(self, value: float) -> None:
        self._fonts.require(self._font_name)
        self._font_size = float(value)

    @property
    def line_height(self) -> Optional[Dict[str, Any]]:
        return self._line_height

    @line_height.setter
    def line_height(self, value: Dict[str, Any]) -> None:
        self._fonts.require(self._font_name)
        self._line_height = value

    @property
    def letter_spacing(self) -> Optional[Dict[str, Any]]:
        return self._letter_spacing

    @letter_spacing.setter
    def letter_spacing(self, value: Dict[str, Any]) -> None:
        self._fonts.require(self._font_name)
        self._letter_spacing = value

    def _auto_size(self) -> None:
        lines = self._characters.split("\n") or [""]
        self.width = max(len(line) for line in lines) * self._font_size * 0.6
        self.height = len(lines) * self._font_size * 1.2

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "characters": self._characters,
                "fontName": {"family": self._font_name.family, "style": self._font_name.style},
                "fontSize": self._font_size,
                "lineHeight": self._line_height,
                "letterSpacing": self._letter_spacing,
                "textAlignHorizontal": self.text_align_horizontal,
                "fills": [p.to_dict() for p in self.fills],
            }
        )
        return data


class ComponentNode(FrameNode):
    """A library component. ``property_definitions`` lists the allowed variant values."""

    node_type = "COMPONENT"

    def __init__(self, name: str = "Component", property_definitions: Optional[Dict[str, List[str]]] = None):
        super().__init__(name)
        self.property_definitions: Dict[str, List[str]] = dict(property_definitions or {})

    def create_instance(self) -> "InstanceNode":
        instance = InstanceNode(self)
        for child in self.children:
            instance.append_child(child.clone())
        return instance


class ComponentSetNode(ContainerNode):
    node_type = "COMPONENT_SET"

    def __init__(self, name: str = "Component Set"):
        super().__init__(name)


class InstanceNode(GeometryMixin, ContainerNode):
    node_type = "INSTANCE"

    def __init__(self, main_component: ComponentNode):
        super().__init__(main_component.name)
        self._init_geometry(list(main_component.fills))
        self.main_component = main_component
        self.width = main_component.width
        self.height = main_component.height
        self.variant_properties: Dict[str, str] = {
            prop: values[0] for prop, values in main_component.property_definitions.items() if values
        }

    def set_properties(self, properties: Dict[str, str]) -> None:
        """Apply variant values. All values are checked before any is applied."""
        definitions = self.main_component.property_definitions
        for prop, value in properties.items():
            if prop not in definitions:
                raise ValueError(f"Component {self.main_component.name!r} has no property {prop!r}")
            if value not in definitions[prop]:
                raise ValueError(f"Invalid value {value!r} for property {prop!r}")
        self.variant_properties.update(properties)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(self._geometry_dict())
        data["mainComponent"] = self.main_component.name
        data["variantProperties"] = dict(self.variant_properties)
        return data


class PageNode(ContainerNode):
    node_type = "PAGE"


LibraryAsset = Union[ComponentNode, ComponentSetNode]


class Canvas(Protocol):
    """The design-tool operations the builder and component resolver depend on."""

    def create_page(self) -> PageNode: ...

    def create_frame(self) -> FrameNode: ...

    def create_text(self) -> TextNode: ...

    def create_rectangle(self) -> RectangleNode: ...

    async def load_font(self, font: FontName) -> None: ...

    async def import_component(self, key: str, is_set: bool) -> LibraryAsset: ...

    def set_current_page(self, page: PageNode) -> None: ...

    def focus(self, nodes: List[SceneNode]) -> None: ...


class InMemoryCanvas:
    """A document held entirely in memory, with a library of importable components."""

    def __init__(
        self,
        fonts: Optional[FontRegistry] = None,
        library: Optional[Dict[str, LibraryAsset]] = None,
    ):
        self.fonts = fonts or FontRegistry()
        self.library: Dict[str, LibraryAsset] = dict(library or {})
        self.pages: List[PageNode] = []
        self.current_page: Optional[PageNode] = None
        self.viewport_focus: List[str] = []
        self.import_log: List[str] = []

    def create_page(self) -> PageNode:
        page = PageNode("Page")
        self.pages.append(page)
        return page

    def create_frame(self) -> FrameNode:
        return FrameNode()

    def create_text(self) -> TextNode:
        return TextNode(self.fonts)

    def create_rectangle(self) -> RectangleNode:
        return RectangleNode()

    async def load_font(self, font: FontName) -> None:
        await self.fonts.load(font)

    async def import_component(self, key: str, is_set: bool) -> LibraryAsset:
        self.import_log.append(key)
        asset = self.library.get(key)
        if asset is None:
            raise AssetImportError(f"No published component found for key {key!r}")
        expected = ComponentSetNode if is_set else ComponentNode
        if not isinstance(asset, expected):
            raise AssetImportError(f"Asset {key!r} is a {asset.node_type}, expected {expected.node_type}")
        logger.debug(f"Imported library asset {key!r} ({asset.node_type})")
        return asset

    def set_current_page(self, page: PageNode) -> None:
        self.current_page = page

    def focus(self, nodes: List[SceneNode]) -> None:
        self.viewport_focus = [node.id for node in nodes]

    def export_page(self, page: Optional[PageNode] = None) -> Dict[str, Any]:
        page = page or self.current_page
        if page is None:
            return {}
        return page.to_dict()
