import json

import pytest

from figma_bridge.errors import DesignSpecValidationError
from figma_bridge.models.schemas import (
    FrameNode,
    ShadcnComponentNode,
    StatusMessage,
    TextNode,
    websocket_message_adapter,
)
from figma_bridge.service.validator import (
    count_nodes,
    dump_design_spec,
    parse_design_spec_text,
    strip_code_fences,
    validate_design_spec,
)


def _spec(nodes, **overrides):
    data = {"version": 1, "name": "Page", "width": 1440, "height": 900, "nodes": nodes}
    data.update(overrides)
    return data


def _nested_frames(depth):
    node = {"type": "rectangle", "name": "leaf", "width": 1, "height": 1}
    for level in range(depth - 1):
        node = {"type": "frame", "name": f"f{level}", "width": 10, "height": 10, "children": [node]}
    return node


def test_defaults_are_applied(text_spec):
    spec = validate_design_spec(text_spec)
    assert spec.background_color.r == 1 and spec.background_color.a == 1

    text = spec.nodes[0]
    assert isinstance(text, TextNode)
    assert text.x == 0 and text.y == 0
    assert text.opacity == 1 and text.visible is True
    assert text.corner_radius is None
    assert text.text_style.font_weight == 400
    assert text.text_style.line_height is None


def test_text_style_defaults_when_absent():
    spec = validate_design_spec(_spec([{"type": "text", "name": "t", "width": 1, "height": 1, "text": "x"}]))
    style = spec.nodes[0].text_style
    assert style.font_family == "Inter"
    assert style.font_size == 14
    assert style.text_align_horizontal == "LEFT"


def test_frame_collections_default_to_empty():
    spec = validate_design_spec(_spec([{"type": "frame", "name": "f", "width": 1, "height": 1, "children": []}]))
    frame = spec.nodes[0]
    assert isinstance(frame, FrameNode)
    assert frame.fills == [] and frame.strokes == []
    assert frame.auto_layout is None


def test_auto_layout_defaults():
    spec = validate_design_spec(
        _spec(
            [
                {
                    "type": "frame",
                    "name": "row",
                    "width": 100,
                    "height": 20,
                    "autoLayout": {"mode": "HORIZONTAL"},
                    "children": [],
                }
            ]
        )
    )
    layout = spec.nodes[0].auto_layout
    assert layout.spacing == 0 and layout.padding_left == 0
    assert layout.primary_axis_align_items == "MIN"
    assert layout.primary_axis_sizing_mode == "AUTO"
    assert layout.counter_axis_sizing_mode == "AUTO"


def test_unknown_fields_are_ignored():
    spec = validate_design_spec(
        _spec(
            [{"type": "rectangle", "name": "r", "width": 1, "height": 1, "shadow": "lg"}],
            generator="test",
        )
    )
    assert spec.nodes[0].name == "r"


def test_paint_type_is_case_insensitive():
    spec = validate_design_spec(
        _spec(
            [
                {
                    "type": "rectangle",
                    "name": "r",
                    "width": 1,
                    "height": 1,
                    "fills": [{"type": "solid", "color": {"r": 0, "g": 0, "b": 0}}],
                    "strokes": [{"type": "SOLID", "color": {"r": 0, "g": 0, "b": 0}}],
                }
            ]
        )
    )
    rect = spec.nodes[0]
    assert rect.fills[0].type == "SOLID"
    assert rect.fills[0].color.a == 1
    assert rect.strokes[0].weight == 1


def test_unsupported_version_is_rejected(text_spec):
    text_spec["version"] = 2
    with pytest.raises(DesignSpecValidationError) as exc_info:
        validate_design_spec(text_spec)
    assert exc_info.value.errors
    assert exc_info.value.errors[0]["loc"] == ("version",)


def test_unknown_node_type_is_rejected():
    with pytest.raises(DesignSpecValidationError):
        validate_design_spec(_spec([{"type": "video", "name": "v", "width": 1, "height": 1}]))


def test_missing_required_field_is_rejected():
    with pytest.raises(DesignSpecValidationError):
        validate_design_spec(_spec([{"type": "rectangle", "name": "r", "width": 1}]))


def test_frame_requires_children():
    with pytest.raises(DesignSpecValidationError):
        validate_design_spec(_spec([{"type": "frame", "name": "f", "width": 1, "height": 1}]))


@pytest.mark.parametrize(
    "node",
    [
        {"type": "rectangle", "name": "r", "width": -1, "height": 1},
        {"type": "rectangle", "name": "r", "width": 1, "height": 1, "opacity": 1.5},
        {"type": "rectangle", "name": "r", "width": float("inf"), "height": 1},
        {"type": "rectangle", "name": "r", "width": 1, "height": float("nan")},
        {
            "type": "rectangle",
            "name": "r",
            "width": 1,
            "height": 1,
            "fills": [{"type": "SOLID", "color": {"r": 1.2, "g": 0, "b": 0}}],
        },
        {
            "type": "rectangle",
            "name": "r",
            "width": 1,
            "height": 1,
            "strokes": [{"type": "SOLID", "color": {"r": 0, "g": 0, "b": 0}, "weight": 0}],
        },
    ],
)
def test_out_of_range_values_are_rejected(node):
    with pytest.raises(DesignSpecValidationError):
        validate_design_spec(_spec([node]))


def test_non_object_input_is_rejected():
    with pytest.raises(DesignSpecValidationError):
        validate_design_spec(["not", "a", "spec"])


def test_depth_limit_is_enforced():
    with pytest.raises(DesignSpecValidationError, match="nested deeper"):
        validate_design_spec(_spec([_nested_frames(10)]), max_depth=5)

    spec = validate_design_spec(_spec([_nested_frames(5)]), max_depth=5)
    assert count_nodes(spec.nodes) == 5


def test_round_trip_is_idempotent():
    spec = validate_design_spec(
        _spec(
            [
                {
                    "type": "frame",
                    "name": "card",
                    "x": 10,
                    "y": 20,
                    "width": 320,
                    "height": 200,
                    "cornerRadius": 8,
                    "fills": [{"type": "SOLID", "color": {"r": 1, "g": 1, "b": 1, "a": 0.5}}],
                    "autoLayout": {"mode": "VERTICAL", "spacing": 8, "paddingTop": 16},
                    "children": [
                        {
                            "type": "text",
                            "name": "title",
                            "width": 200,
                            "height": 24,
                            "text": "Hello",
                            "textStyle": {"fontWeight": 600, "lineHeight": 24, "color": {"r": 0, "g": 0, "b": 0}},
                        },
                        {
                            "type": "shadcn-component",
                            "name": "cta",
                            "width": 80,
                            "height": 36,
                            "componentName": "Button",
                            "componentProps": {"variant": "outline", "disabled": True},
                            "textContent": "Go",
                        },
                        {"type": "image", "name": "hero", "width": 100, "height": 60, "imageUrl": "/hero.png"},
                    ],
                }
            ],
            backgroundColor={"r": 0.1, "g": 0.2, "b": 0.3},
        )
    )

    dumped = dump_design_spec(spec)
    assert validate_design_spec(json.loads(dumped)) == spec
    assert '"componentName":"Button"' in dumped
    assert "cornerRadius" in dumped
    assert "imageUrl" in dumped


def test_dump_omits_unset_optional_fields(text_spec):
    data = json.loads(dump_design_spec(validate_design_spec(text_spec)))
    node = data["nodes"][0]
    assert "cornerRadius" not in node
    assert "lineHeight" not in node["textStyle"]
    assert node["textStyle"]["fontWeight"] == 400


def test_parse_strips_code_fences(text_spec):
    text = "```json\n" + json.dumps(text_spec) + "\n```"
    spec = parse_design_spec_text(text)
    assert spec.name == "T"


def test_strip_code_fences_leaves_plain_text_alone():
    assert strip_code_fences('  {"a": 1}\n') == '{"a": 1}'
    assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'


def test_parse_rejects_invalid_json():
    with pytest.raises(DesignSpecValidationError, match="not valid JSON"):
        parse_design_spec_text("{version: 1")


def test_count_nodes_recurses_into_frames_and_components():
    spec = validate_design_spec(
        _spec(
            [
                {
                    "type": "frame",
                    "name": "f",
                    "width": 1,
                    "height": 1,
                    "children": [
                        {"type": "rectangle", "name": "r", "width": 1, "height": 1},
                        {
                            "type": "shadcn-component",
                            "name": "c",
                            "width": 1,
                            "height": 1,
                            "componentName": "Card",
                            "children": [{"type": "text", "name": "t", "width": 1, "height": 1, "text": "x"}],
                        },
                    ],
                },
                {"type": "image", "name": "i", "width": 1, "height": 1},
            ]
        )
    )
    assert isinstance(spec.nodes[0].children[1], ShadcnComponentNode)
    assert count_nodes(spec.nodes) == 5
    assert count_nodes([]) == 0


def test_status_message_envelope():
    message = websocket_message_adapter.validate_json(
        '{"type": "status", "payload": {"status": "progress", "message": "Building: a", "progress": 50}}'
    )
    assert isinstance(message, StatusMessage)
    assert message.payload.progress == 50

    with pytest.raises(ValueError):
        websocket_message_adapter.validate_json('{"type": "status", "payload": {"status": "progress", "progress": 101}}')
    with pytest.raises(ValueError):
        websocket_message_adapter.validate_json('{"type": "ping", "payload": {}}')
