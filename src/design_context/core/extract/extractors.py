"""Type-specific attribute extractors for design tree nodes.

Node types resolve to a closed set of kinds through a lookup table; each kind
maps to one pure extractor. Extractors read every optional field with a safe
default so that partial exports never raise for a missing key.
"""

from collections.abc import Callable, Mapping
from enum import StrEnum
from typing import Any


class NodeKind(StrEnum):
    """Extractor kinds known to the registry."""

    FRAME = "frame"
    COMPONENT = "component"
    TEXT = "text"
    STYLE = "style"
    VECTOR = "vector"
    INSTANCE = "instance"
    UNKNOWN = "unknown"


# Lowercased node type -> kind. Plain shapes only carry paint, so they share
# the style extractor.
_KIND_BY_TYPE: dict[str, NodeKind] = {
    "frame": NodeKind.FRAME,
    "component": NodeKind.COMPONENT,
    "text": NodeKind.TEXT,
    "style": NodeKind.STYLE,
    "rectangle": NodeKind.STYLE,
    "ellipse": NodeKind.STYLE,
    "polygon": NodeKind.STYLE,
    "star": NodeKind.STYLE,
    "line": NodeKind.STYLE,
    "boolean_operation": NodeKind.STYLE,
    "vector": NodeKind.VECTOR,
    "instance": NodeKind.INSTANCE,
}


def resolve_kind(node_type: object) -> NodeKind:
    """Map a raw node type (any case) to its extractor kind."""
    if not isinstance(node_type, str):
        return NodeKind.UNKNOWN
    return _KIND_BY_TYPE.get(node_type.lower(), NodeKind.UNKNOWN)


def rgba_to_hex(rgba: Any) -> str | None:
    """Convert a {r, g, b} color with 0..1 channels to #rrggbb."""
    if not isinstance(rgba, Mapping):
        return None

    def channel(name: str) -> int:
        value = rgba.get(name) or 0
        return max(0, min(255, round(float(value) * 255)))

    return f"#{channel('r'):02x}{channel('g'):02x}{channel('b'):02x}"


def _paints(value: Any) -> list[Mapping[str, Any]]:
    if not isinstance(value, list):
        return []
    return [p for p in value if isinstance(p, Mapping)]


def _normalize_fill(fill: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "type": fill.get("type"),
        "color": rgba_to_hex(fill.get("color")),
        "opacity": fill.get("opacity", 1),
        "visible": fill.get("visible", True) is not False,
    }


def _normalize_stroke(stroke: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "type": stroke.get("type"),
        "color": rgba_to_hex(stroke.get("color")),
        "opacity": stroke.get("opacity", 1),
    }


def _normalize_effect(effect: Mapping[str, Any]) -> dict[str, Any]:
    color = effect.get("color")
    return {
        "type": effect.get("type"),
        "color": rgba_to_hex(color),
        "opacity": color.get("a", 1) if isinstance(color, Mapping) else 1,
        "offset": effect.get("offset"),
        "radius": effect.get("radius"),
        "spread": effect.get("spread"),
    }


def extract_frame(node: Mapping[str, Any]) -> dict[str, Any]:
    attrs: dict[str, Any] = {
        "nodeType": NodeKind.FRAME.value,
        "layoutMode": node.get("layoutMode") or "NONE",
        "layoutWrap": node.get("layoutWrap") or "NO_WRAP",
        "layoutGrow": node.get("layoutGrow") or 0,
    }
    for source_key, target_key in (
        ("primaryAxisSizingMode", "primaryAxisSizing"),
        ("counterAxisSizingMode", "counterAxisSizing"),
        ("primaryAxisAlignItems", "primaryAxisAlign"),
        ("counterAxisAlignItems", "counterAxisAlign"),
    ):
        if node.get(source_key):
            attrs[target_key] = node[source_key]

    sides = ("Left", "Right", "Top", "Bottom")
    if any(f"padding{side}" in node for side in sides):
        attrs["padding"] = {side.lower(): node.get(f"padding{side}", 0) for side in sides}

    if "itemSpacing" in node:
        attrs["gap"] = node["itemSpacing"]
    return attrs


def extract_component(node: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "nodeType": NodeKind.COMPONENT.value,
        "componentId": node.get("componentId"),
        "componentSetId": node.get("componentSetId"),
        "isMainComponent": True,
        "description": node.get("description") or "",
    }


def extract_text(node: Mapping[str, Any]) -> dict[str, Any]:
    style = node.get("style")
    if not isinstance(style, Mapping):
        style = {}
    attrs: dict[str, Any] = {
        "nodeType": NodeKind.TEXT.value,
        "content": node.get("characters") or "",
        "fontFamily": style.get("fontFamily"),
        "fontSize": style.get("fontSize"),
        "fontWeight": style.get("fontWeight"),
        "textAlign": style.get("textAlignHorizontal"),
        "lineHeight": style.get("lineHeightPx"),
        "letterSpacing": style.get("letterSpacing"),
    }
    fill = next((f for f in _paints(node.get("fills")) if f.get("visible") is not False), None)
    if fill and fill.get("color"):
        attrs["color"] = rgba_to_hex(fill["color"])
    return attrs


def extract_style(node: Mapping[str, Any]) -> dict[str, Any]:
    attrs: dict[str, Any] = {"nodeType": NodeKind.STYLE.value}
    if "fills" in node:
        attrs["fills"] = [_normalize_fill(f) for f in _paints(node["fills"])]
    if "strokes" in node:
        attrs["strokes"] = [_normalize_stroke(s) for s in _paints(node["strokes"])]
    if "effects" in node:
        attrs["effects"] = [_normalize_effect(e) for e in _paints(node["effects"])]
    return attrs


def extract_vector(node: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "nodeType": NodeKind.VECTOR.value,
        "strokeWeight": node.get("strokeWeight") or 0,
        "strokeAlign": node.get("strokeAlign") or "INSIDE",
        "cornerRadius": node.get("cornerRadius") or 0,
    }


def extract_instance(node: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "nodeType": NodeKind.INSTANCE.value,
        "componentId": node.get("componentId"),
        "isMainComponent": False,
        "overrides": node.get("overrides") or {},
    }


EXTRACTORS: dict[NodeKind, Callable[[Mapping[str, Any]], dict[str, Any]]] = {
    NodeKind.FRAME: extract_frame,
    NodeKind.COMPONENT: extract_component,
    NodeKind.TEXT: extract_text,
    NodeKind.STYLE: extract_style,
    NodeKind.VECTOR: extract_vector,
    NodeKind.INSTANCE: extract_instance,
}


def extract(node_type: str, node: Mapping[str, Any]) -> dict[str, Any]:
    """Return the type-specific attributes of node.

    Unknown types yield an empty dict; the caller still records base fields.
    """
    extractor = EXTRACTORS.get(resolve_kind(node_type))
    if extractor is None:
        return {}
    return extractor(node)
