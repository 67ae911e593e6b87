from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel


# --- Base Pydantic Model ---
class AppBaseModel(BaseModel):
    """
    Base model for everything that travels over the wire.
    Python attributes are snake_case, the wire format is camelCase.
    """

    model_config = {
        "frozen": True,  # A validated spec is an immutable value
        "extra": "ignore",  # Unknown fields are ignored for forward compatibility
        "populate_by_name": True,  # Accept snake_case names as well as the camelCase aliases
        "alias_generator": to_camel,
        "allow_inf_nan": False,  # All numeric fields must be finite
    }


# --- Paint Models ---
class Color(AppBaseModel):
    """RGBA color with every channel in [0, 1]."""

    r: float = Field(ge=0, le=1)
    g: float = Field(ge=0, le=1)
    b: float = Field(ge=0, le=1)
    a: float = Field(default=1.0, ge=0, le=1)


class Paint(AppBaseModel):
    type: Literal["SOLID"] = Field(description="Paint kind. Only solid paints are supported.")
    color: Color

    @field_validator("type", mode="before")
    @classmethod
    def normalize_paint_type(cls, value: Any) -> Any:
        """Accept the paint kind in any letter case ("solid" -> "SOLID")."""
        if isinstance(value, str):
            return value.upper()
        return value


class Fill(Paint):
    pass


class Stroke(Paint):
    weight: float = Field(default=1.0, gt=0, description="Stroke weight in pixels.")


# --- Typography and Layout ---
TextAlign = Literal["LEFT", "CENTER", "RIGHT", "JUSTIFIED"]


class TextStyle(AppBaseModel):
    font_family: str = "Inter"
    font_weight: int = Field(default=400, description="CSS-style numeric weight (100-900).")
    font_size: float = 14.0
    line_height: Optional[float] = None
    letter_spacing: Optional[float] = None
    text_align_horizontal: TextAlign = "LEFT"
    color: Optional[Color] = None


class AutoLayout(AppBaseModel):
    mode: Literal["HORIZONTAL", "VERTICAL"]
    spacing: float = 0.0
    padding_top: float = 0.0
    padding_right: float = 0.0
    padding_bottom: float = 0.0
    padding_left: float = 0.0
    primary_axis_align_items: Literal["MIN", "CENTER", "MAX", "SPACE_BETWEEN"] = "MIN"
    counter_axis_align_items: Literal["MIN", "CENTER", "MAX"] = "MIN"
    primary_axis_sizing_mode: Literal["FIXED", "AUTO"] = "AUTO"
    counter_axis_sizing_mode: Literal["FIXED", "AUTO"] = "AUTO"


# --- Design Nodes (recursive) ---
class BaseDesignNode(AppBaseModel):
    """Fields shared by every node variant."""

    name: str
    x: float = 0.0
    y: float = 0.0
    width: float = Field(ge=0)
    height: float = Field(ge=0)
    opacity: float = Field(default=1.0, ge=0, le=1)
    visible: bool = True
    corner_radius: Optional[float] = None


class FrameNode(BaseDesignNode):
    type: Literal["frame"] = "frame"
    fills: List[Fill] = Field(default_factory=list)
    strokes: List[Stroke] = Field(default_factory=list)
    auto_layout: Optional[AutoLayout] = None
    children: List["DesignNode"]


class ShadcnComponentNode(BaseDesignNode):
    type: Literal["shadcn-component"] = "shadcn-component"
    component_name: str
    component_props: Dict[str, Any] = Field(default_factory=dict)
    text_content: Optional[str] = None
    children: Optional[List["DesignNode"]] = None


class TextNode(BaseDesignNode):
    type: Literal["text"] = "text"
    text: str
    text_style: TextStyle = Field(default_factory=TextStyle)


class RectangleNode(BaseDesignNode):
    type: Literal["rectangle"] = "rectangle"
    fills: List[Fill] = Field(default_factory=list)
    strokes: List[Stroke] = Field(default_factory=list)


class ImageNode(BaseDesignNode):
    type: Literal["image"] = "image"
    image_url: Optional[str] = None
    fills: List[Fill] = Field(default_factory=list)


# Closed sum type over the five node variants, discriminated on "type".
DesignNode = Annotated[
    Union[FrameNode, ShadcnComponentNode, TextNode, RectangleNode, ImageNode],
    Field(discriminator="type"),
]

FrameNode.model_rebuild()
ShadcnComponentNode.model_rebuild()

NodeType = Literal["frame", "shadcn-component", "text", "rectangle", "image"]


def _white() -> Color:
    return Color(r=1.0, g=1.0, b=1.0, a=1.0)


# --- Document Root ---
class DesignSpec(AppBaseModel):
    """The root document describing one page to be recreated."""

    version: Literal[1] = Field(description="Schema version. Only version 1 is supported.")
    name: str
    width: float
    height: float
    background_color: Color = Field(default_factory=_white)
    nodes: List[DesignNode] = Field(description="Top-level nodes in render (z) order.")


# --- WebSocket Messages ---
SessionStatus = Literal["connected", "building", "progress", "complete", "error"]


class StatusPayload(AppBaseModel):
    status: SessionStatus
    message: Optional[str] = None
    progress: Optional[float] = Field(default=None, ge=0, le=100)


class StatusMessage(AppBaseModel):
    """Status update sent by the consumer (and parsed by the producer)."""

    type: Literal["status"] = "status"
    payload: StatusPayload


class DesignSpecMessage(AppBaseModel):
    """Carries the validated design spec from the producer to the consumer."""

    type: Literal["design-spec"] = "design-spec"
    payload: DesignSpec


WebSocketMessage = Annotated[
    Union[DesignSpecMessage, StatusMessage],
    Field(discriminator="type"),
]

websocket_message_adapter: TypeAdapter = TypeAdapter(WebSocketMessage)


def dump_message(message: Union[DesignSpecMessage, StatusMessage]) -> str:
    """Serialize a wire message in its canonical camelCase form."""
    return message.model_dump_json(by_alias=True, exclude_none=True)


if __name__ == "__main__":
    import json

    example = DesignSpec(
        version=1,
        name="Example",
        width=1440,
        height=900,
        nodes=[
            FrameNode(
                name="card",
                width=320,
                height=200,
                auto_layout=AutoLayout(mode="VERTICAL", spacing=8),
                children=[TextNode(name="title", width=200, height=24, text="Hello")],
            )
        ],
    )
    print("--- DesignSpec Example ---")
    print(json.dumps(example.model_dump(by_alias=True, exclude_none=True), indent=2))
