"""
Node Normalizer
===============
Turns one raw Figma node document into an immutable ``NormalizedNode``.

- Vector geometry payloads are dropped unconditionally
- Attributes are split into ``known`` (layout / paint / text allow-list)
  and ``other`` (everything else except ``children``)
- ``child_ids`` keeps only visible children, in document order
- ``tw`` holds best-effort twin.macro / Tailwind class hints

Pure functions only; malformed input degrades to empty fields, never raises.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .utils import format_px, hex_from_color, is_number


# Never stored, regardless of allow-list membership
GEOMETRY_KEYS = frozenset(["vectorPaths", "vectorNetwork", "vectorData"])

KNOWN_KEYS: Tuple[str, ...] = (
    "id", "name", "type", "visible", "locked",
    "opacity", "blendMode", "isMask", "maskType", "clipsContent",
    # Auto layout
    "layoutMode", "layoutWrap",
    "primaryAxisSizingMode", "counterAxisSizingMode",
    "primaryAxisAlignItems", "counterAxisAlignItems",
    "primaryAxisAlignContent", "counterAxisAlignContent",
    "itemSpacing",
    "paddingTop", "paddingRight", "paddingBottom", "paddingLeft",
    "layoutPositioning", "constraints",
    # Geometry summaries (not vector payloads)
    "absoluteBoundingBox", "absoluteRenderBounds", "size",
    "relativeTransform", "rotation",
    "cornerRadius", "rectangleCornerRadii",
    # Paint
    "fills", "strokes", "strokeWeight", "strokeAlign",
    "strokeCap", "strokeJoin", "strokeDashes",
    "effects", "styles",
    # Text
    "characters", "style", "characterStyleOverrides", "styleOverrideTable",
    # Components / prototyping
    "componentId", "componentProperties", "variantProperties",
    "documentationLinks", "reactions",
    "transitionNodeID", "prototypeStartNodeID",
    "exportSettings",
)
_KNOWN_SET = frozenset(KNOWN_KEYS)

NODE_TYPES = frozenset([
    "DOCUMENT", "CANVAS", "FRAME", "GROUP", "SECTION",
    "VECTOR", "BOOLEAN_OPERATION", "STAR", "LINE", "ELLIPSE",
    "REGULAR_POLYGON", "RECTANGLE", "TABLE", "TABLE_CELL", "TEXT",
    "SLICE", "COMPONENT", "COMPONENT_SET", "INSTANCE",
    "STICKY", "SHAPE_WITH_TEXT", "CONNECTOR", "WASHI_TAPE",
])

_VECTOR_LIKE_TYPES = frozenset([
    "VECTOR", "BOOLEAN_OPERATION", "LINE", "ELLIPSE", "REGULAR_POLYGON", "STAR",
])
_SVG_TYPES = frozenset(["VECTOR", "BOOLEAN_OPERATION", "STAR", "REGULAR_POLYGON"])

_EMPTY: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True)
class NormalizedNode:
    """
    One visible node, stripped of geometry and split into known/other fields.

    ``known`` and ``other`` are read-only views and never share a key.
    """
    id: str
    name: Optional[str] = None
    type: Optional[str] = None
    child_ids: Tuple[str, ...] = ()
    known: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    other: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    tw: Tuple[str, ...] = ()

    @property
    def display_name(self) -> str:
        return self.name if self.name is not None else "Unnamed"

    @property
    def is_vector_like(self) -> bool:
        return self.type in _VECTOR_LIKE_TYPES

    @property
    def is_known_type(self) -> bool:
        return self.type in NODE_TYPES

    def to_dict(self) -> dict:
        return {
            'id': self.id, 'name': self.name, 'type': self.type,
            'childIds': list(self.child_ids),
            'known': dict(self.known), 'other': dict(self.other),
            'tw': list(self.tw),
        }


def is_visible(node: Any) -> bool:
    """Figma's ``visible`` defaults to true when omitted."""
    if not isinstance(node, dict):
        return False
    return node.get("visible") is not False


def visible_child_ids(doc: Mapping[str, Any]) -> List[str]:
    """Ordered ids of children not explicitly hidden; duplicates dropped."""
    children = doc.get("children")
    if not isinstance(children, list):
        return []
    ids: List[str] = []
    seen = set()
    for child in children:
        if not is_visible(child):
            continue
        cid = child.get("id")
        if not cid or not isinstance(cid, str) or cid in seen:
            continue
        seen.add(cid)
        ids.append(cid)
    return ids


def normalize_node(doc: Mapping[str, Any]) -> NormalizedNode:
    """Normalize one raw node document."""
    if not isinstance(doc, Mapping):
        doc = {}

    raw = {k: v for k, v in doc.items() if k not in GEOMETRY_KEYS}

    known = {k: raw[k] for k in KNOWN_KEYS if k in raw}
    other = {
        k: v for k, v in raw.items()
        if k not in _KNOWN_SET and k != "children"
    }

    return NormalizedNode(
        id=doc.get("id"),
        name=doc.get("name"),
        type=doc.get("type"),
        child_ids=tuple(visible_child_ids(raw)),
        known=MappingProxyType(known),
        other=MappingProxyType(other),
        tw=tuple(infer_tw(known)),
    )


# ---------------------------------------------------------------------------
# Presentation hints
# ---------------------------------------------------------------------------

def _tw_arbitrary(prefix: str, px: Any) -> Optional[str]:
    size = format_px(px)
    return f"{prefix}-[{size}]" if size else None


def infer_tw(props: Mapping[str, Any]) -> List[str]:
    """
    Best-effort Tailwind hints from layout, spacing, fill and corner props.

    Returns a duplicate-free list; empty when nothing applies.
    """
    tw: List[Optional[str]] = []

    layout_mode = props.get("layoutMode")
    if layout_mode == "HORIZONTAL":
        tw += ["flex", "flex-row"]
    elif layout_mode == "VERTICAL":
        tw += ["flex", "flex-col"]

    if is_number(props.get("itemSpacing")):
        tw.append(_tw_arbitrary("gap", props["itemSpacing"]))

    pads = [
        ("pt", props.get("paddingTop")),
        ("pr", props.get("paddingRight")),
        ("pb", props.get("paddingBottom")),
        ("pl", props.get("paddingLeft")),
    ]
    pad_values = [v for _, v in pads if is_number(v)]
    if len(pad_values) == 4 and all(v == pad_values[0] for v in pad_values):
        tw.append(_tw_arbitrary("p", pad_values[0]))
    else:
        for prefix, value in pads:
            if is_number(value):
                tw.append(_tw_arbitrary(prefix, value))

    # First visible solid fill only
    fills = props.get("fills")
    if isinstance(fills, list):
        solid = next(
            (f for f in fills
             if isinstance(f, dict) and f.get("visible") is not False
             and f.get("type") == "SOLID" and f.get("color")),
            None,
        )
        if solid:
            hex_str = hex_from_color(solid["color"])
            if hex_str:
                tw.append(f"bg-[{hex_str.replace(' @ ', '/')}]")

    if is_number(props.get("cornerRadius")):
        tw.append(_tw_arbitrary("rounded", props["cornerRadius"]))

    return list(dict.fromkeys(c for c in tw if c))


def infer_element(node_type: Optional[str]) -> str:
    """Suggested JSX element for a node type."""
    if node_type == "TEXT":
        return "p"
    if node_type in _SVG_TYPES:
        return "svg"
    return "div"
