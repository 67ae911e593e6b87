import os

os.environ.setdefault("ENABLE_HOT_RELOAD", "False")

import pytest

from figma_bridge.models.collaborators import ComponentInfo
from figma_bridge.service.websocket import SessionEvents
from figma_bridge.utils.canvas import ComponentNode, ComponentSetNode, InMemoryCanvas

BUTTON_VARIANTS = {"Variant": ["Primary", "Outline", "Ghost"], "Size": ["Default", "Small"]}


def make_button_set(canvas: InMemoryCanvas) -> ComponentSetNode:
    button_set = ComponentSetNode("Button")
    for variant in ("Primary", "Outline"):
        member = ComponentNode(f"Variant={variant}, Size=Default", BUTTON_VARIANTS)
        icon = canvas.create_rectangle()
        icon.name = "Icon"
        label = canvas.create_text()
        label.name = "Label"
        member.append_child(icon)
        member.append_child(label)
        button_set.append_child(member)
    return button_set


def make_card(canvas: InMemoryCanvas) -> ComponentNode:
    card = ComponentNode("Card")
    body = canvas.create_text()
    body.name = "Body"
    card.append_child(body)
    return card


@pytest.fixture
def canvas() -> InMemoryCanvas:
    canvas = InMemoryCanvas()
    canvas.library["BUTTON_KEY"] = make_button_set(canvas)
    canvas.library["CARD_KEY"] = make_card(canvas)
    return canvas


@pytest.fixture
def component_map():
    return {
        "Button": ComponentInfo(
            key="BUTTON_KEY",
            is_component_set=True,
            react_to_figma_props={
                "variant": {"default": "Primary", "outline": "Outline", "ghost": "Ghost"},
                "size": {"default": "Default", "sm": "Small", "lg": "Large"},
            },
            default_variant_props={"Variant": "Primary", "Size": "Default"},
            text_layers=["Label"],
        ),
        "Card": ComponentInfo(key="CARD_KEY", text_layers=["Title"]),
        "Badge": ComponentInfo(key="PLACEHOLDER_BADGE_KEY", is_component_set=True, text_layers=["Label"]),
        "Avatar": ComponentInfo(key="MISSING_KEY"),
    }


@pytest.fixture
def text_spec():
    return {
        "version": 1,
        "name": "T",
        "width": 100,
        "height": 50,
        "nodes": [
            {
                "type": "text",
                "name": "a",
                "width": 10,
                "height": 10,
                "text": "Hi",
                "textStyle": {
                    "fontFamily": "Inter",
                    "fontWeight": 400,
                    "fontSize": 14,
                    "textAlignHorizontal": "LEFT",
                },
            }
        ],
    }


class RecordingEvents(SessionEvents):
    def __init__(self):
        self.events = []

    def on_connected(self):
        self.events.append(("connected",))

    def on_progress(self, message, progress):
        self.events.append(("progress", message, progress))

    def on_complete(self):
        self.events.append(("complete",))

    def on_error(self, message):
        self.events.append(("error", message))


@pytest.fixture
def events() -> RecordingEvents:
    return RecordingEvents()
