import json
import logging
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from ..config import settings
from ..errors import DesignSpecValidationError
from ..models.schemas import DesignSpec, FrameNode, ShadcnComponentNode

logger = logging.getLogger(settings.SERVICE_NAME + ".validator")

_CODE_FENCE = "```"


def _check_depth(raw: Any, max_depth: int) -> None:
    """
    Reject documents nested deeper than ``max_depth`` before handing them to
    pydantic, whose recursive validation would otherwise hit the interpreter
    recursion limit on pathological input.
    """
    if not isinstance(raw, dict):
        return
    stack = [(node, 1) for node in raw.get("nodes") or [] if isinstance(node, dict)]
    while stack:
        node, depth = stack.pop()
        if depth > max_depth:
            raise DesignSpecValidationError(
                f"Design spec is nested deeper than the supported maximum of {max_depth} levels"
            )
        children = node.get("children")
        if isinstance(children, list):
            stack.extend((child, depth + 1) for child in children if isinstance(child, dict))


def validate_design_spec(raw: Any, max_depth: Optional[int] = None) -> DesignSpec:
    """
    Validate an arbitrary JSON value into a DesignSpec.

    Unknown fields are ignored and missing optional fields take their defaults.
    Missing or wrong-shaped required fields, an unknown node ``type`` or an
    unsupported ``version`` raise DesignSpecValidationError. Nothing is ever
    partially accepted.
    """
    _check_depth(raw, max_depth if max_depth is not None else settings.MAX_NODE_DEPTH)
    try:
        return DesignSpec.model_validate(raw)
    except ValidationError as e:
        errors = e.errors(include_url=False, include_context=False)
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise DesignSpecValidationError(
            f"Invalid design spec ({e.error_count()} error(s)); first at '{location}': {first.get('msg', '')}",
            errors=errors,
        ) from e


def strip_code_fences(text: str) -> str:
    """Remove a single enclosing markdown code fence (``` or ```json) if present."""
    content = text.strip()
    if content.startswith(_CODE_FENCE):
        first_newline = content.find("\n")
        content = content[first_newline + 1 :] if first_newline != -1 else content[len(_CODE_FENCE) :]
        if content.rstrip().endswith(_CODE_FENCE):
            content = content.rstrip()[: -len(_CODE_FENCE)]
    return content.strip()


def parse_design_spec_text(text: str) -> DesignSpec:
    """Parse model output or file contents (optionally code-fenced) into a DesignSpec."""
    content = strip_code_fences(text)
    try:
        raw = json.loads(content)
    except json.JSONDecodeError as e:
        raise DesignSpecValidationError(f"Design spec is not valid JSON: {e}") from e
    return validate_design_spec(raw)


def dump_design_spec(spec: DesignSpec, indent: Optional[int] = None) -> str:
    """Canonical camelCase JSON. Unset optional fields are omitted."""
    return spec.model_dump_json(by_alias=True, exclude_none=True, indent=indent)


def count_nodes(nodes: Optional[Iterable[Any]]) -> int:
    """Pre-order count of a node list, recursing into frame and component children."""
    total = 0
    stack: List[Any] = list(nodes or [])
    while stack:
        node = stack.pop()
        total += 1
        if isinstance(node, (FrameNode, ShadcnComponentNode)) and node.children:
            stack.extend(node.children)
    return total
