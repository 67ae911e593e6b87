import logging
from typing import Any, Dict, Mapping

from ..config import settings
from ..errors import AssetImportError
from ..models.collaborators import ComponentInfo
from ..models.schemas import ShadcnComponentNode
from ..utils.attempt import attempt, attempt_async
from ..utils.canvas import (
    DEFAULT_FONT,
    RGB,
    Canvas,
    ComponentNode,
    InstanceNode,
    SceneNode,
    SolidPaint,
    TextNode,
)
from ..utils.canvas import FrameNode as SceneFrame

logger = logging.getLogger(settings.SERVICE_NAME + ".components")

FALLBACK_FILL = RGB(0.96, 0.96, 0.98)
FALLBACK_STROKE = RGB(0.8, 0.8, 0.85)
FALLBACK_LABEL_COLOR = RGB(0.3, 0.3, 0.35)
FALLBACK_LABEL_SIZE = 13


def translate_props(info: ComponentInfo, props: Mapping[str, Any]) -> Dict[str, str]:
    """
    Effective variant properties for an instance: the component's defaults,
    overridden by every React prop whose value has an entry in the
    translation table. Variant property names are the prop names with the
    first letter upper-cased (``variant`` -> ``Variant``).
    """
    effective = dict(info.default_variant_props)
    for prop_name, prop_value in props.items():
        mapping = info.react_to_figma_props.get(prop_name)
        if mapping and isinstance(prop_value, str) and prop_value in mapping:
            effective[prop_name[:1].upper() + prop_name[1:]] = mapping[prop_value]
    return effective


class ComponentResolver:
    """
    Turns component-reference nodes into library instances, or into a labelled
    fallback frame when the component is unknown or cannot be imported.

    Imported assets are cached per key for the lifetime of the resolver, so a
    component used many times in one document is imported once.
    """

    def __init__(self, canvas: Canvas, component_map: Mapping[str, ComponentInfo]):
        self.canvas = canvas
        self.component_map = dict(component_map)
        self._import_cache: Dict[str, ComponentNode] = {}

    async def resolve(self, node: ShadcnComponentNode) -> SceneNode:
        info = self.component_map.get(node.component_name)
        if info is None:
            logger.debug(f"No mapping for component {node.component_name!r}, using fallback")
            return await self.build_fallback(node)
        if not info.is_configured:
            logger.debug(f"Component {node.component_name!r} has no library key yet, using fallback")
            return await self.build_fallback(node)

        try:
            return await self._instantiate(node, info)
        except Exception as e:
            logger.warning(f"Failed to import {node.component_name}, using fallback: {e}")
            return await self.build_fallback(node)

    async def _get_component(self, info: ComponentInfo) -> ComponentNode:
        component = self._import_cache.get(info.key)
        if component is not None:
            return component

        if info.is_component_set:
            component_set = await self.canvas.import_component(info.key, True)
            members = [child for child in component_set.children if isinstance(child, ComponentNode)]
            if not members:
                raise AssetImportError(f"Component set {info.key!r} has no component children")
            # First member is the default variant
            component = members[0]
        else:
            component = await self.canvas.import_component(info.key, False)

        self._import_cache[info.key] = component
        return component

    async def _instantiate(self, node: ShadcnComponentNode, info: ComponentInfo) -> InstanceNode:
        component = await self._get_component(info)
        instance = component.create_instance()
        instance.name = node.name
        instance.x = node.x
        instance.y = node.y
        instance.resize(node.width, node.height)
        instance.opacity = node.opacity
        instance.visible = node.visible

        variant_props = translate_props(info, node.component_props)
        applied = attempt(instance.set_properties, variant_props)
        if not applied.ok:
            # The instance keeps its default variant
            logger.debug(f"Variant properties {variant_props} not applied to {node.component_name}: {applied.error}")

        if node.text_content and info.text_layers:
            await self._write_text(instance, info.text_layers[0], node.text_content)
        return instance

    async def _write_text(self, instance: InstanceNode, layer_name: str, text: str) -> None:
        layer = instance.find_one(lambda n: isinstance(n, TextNode) and n.name == layer_name)
        if layer is None:
            layer = instance.find_one(lambda n: isinstance(n, TextNode))
        if layer is None:
            logger.debug(f"Instance {instance.name!r} has no text layer for {text!r}")
            return
        await self.canvas.load_font(layer.font_name)
        layer.characters = text

    async def build_fallback(self, node: ShadcnComponentNode) -> SceneFrame:
        """A bordered frame with a centered label naming the component (or showing its text)."""
        frame = self.canvas.create_frame()
        frame.name = f"{node.component_name} (fallback)"
        frame.x = node.x
        frame.y = node.y
        frame.resize(node.width, node.height)
        frame.opacity = node.opacity
        frame.visible = node.visible

        frame.fills = [SolidPaint(FALLBACK_FILL)]
        frame.strokes = [SolidPaint(FALLBACK_STROKE)]
        frame.stroke_weight = 1
        frame.corner_radius = 6

        frame.layout_mode = "VERTICAL"
        frame.primary_axis_align_items = "CENTER"
        frame.counter_axis_align_items = "CENTER"
        frame.padding_top = 8
        frame.padding_bottom = 8
        frame.padding_left = 12
        frame.padding_right = 12

        label_text = node.text_content or node.component_name
        label = self.canvas.create_text()
        label.name = label_text

        loaded = await attempt_async(self.canvas.load_font, DEFAULT_FONT)
        if loaded.ok:
            label.characters = label_text
            label.font_size = FALLBACK_LABEL_SIZE
            label.fills = [SolidPaint(FALLBACK_LABEL_COLOR)]
        else:
            logger.debug(f"Label font unavailable for {frame.name!r}, leaving default text rendering: {loaded.error}")

        frame.append_child(label)
        return frame
