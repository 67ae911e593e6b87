from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

from .schemas import AppBaseModel


# --- Screenshot Collaborator ---
class ScreenshotResult(AppBaseModel):
    """A viewport-sized PNG capture of the running app."""

    base64: str = Field(description="Base64-encoded PNG screenshot.")
    viewport_width: int
    viewport_height: int
    page_height: int = Field(description="Full scroll height of the page body in pixels.")


# --- Code Analysis Collaborator ---
PropValue = Union[str, bool, None]


class ComponentUsage(AppBaseModel):
    """One JSX usage of a design-system component found in project source."""

    name: str
    props: Dict[str, PropValue] = Field(default_factory=dict)
    children: Optional[str] = Field(default=None, description="Plain text children, if any.")
    source_file: str
    line: int = 0


class CodeAnalysis(AppBaseModel):
    source_code: str = Field(default="", description="Concatenated relevant source, size-capped.")
    component_usages: List[ComponentUsage] = Field(default_factory=list)
    files: List[str] = Field(default_factory=list, description="Project-relative paths analyzed.")


# --- Component Asset Mapping ---
class ComponentInfo(BaseModel):
    """How a logical component name maps onto a library asset."""

    model_config = {"populate_by_name": True, "frozen": True}

    key: str = Field(description="Library asset key. Empty or PLACEHOLDER_* means not configured yet.")
    is_component_set: bool = Field(default=False, alias="isComponentSet")
    react_to_figma_props: Dict[str, Dict[str, str]] = Field(
        default_factory=dict,
        alias="reactToFigmaProps",
        description="prop name -> (prop value -> variant value) translation table.",
    )
    default_variant_props: Dict[str, str] = Field(default_factory=dict, alias="defaultVariantProps")
    text_layers: List[str] = Field(
        default_factory=list,
        alias="textLayers",
        description="Names of text layers whose content can be overridden, in priority order.",
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.key) and not self.key.startswith("PLACEHOLDER_")


class ComponentMap(BaseModel):
    """Internal model for the component_map.json file."""

    model_config = {"extra": "forbid"}

    components: Dict[str, ComponentInfo] = Field(default_factory=dict)
