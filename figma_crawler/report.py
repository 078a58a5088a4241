"""
Markdown Report Rendering
=========================
Renders crawled node maps as Markdown: a layer tree plus a detailed
per-node spec for each section, and an index file tying sections together.

Walks ``child_ids`` from a root; a child missing from the node map was
hidden or unresolvable and is silently left out. A node reached twice
(shared or cyclic child references) is rendered only the first time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Set

from .inventory import Inventories, inventory_markdown
from .normalizer import NormalizedNode, infer_element
from .utils import fence_for_text, hex_from_color, is_number, stable_json

NodeMap = Mapping[str, NormalizedNode]

_GRADIENT_TYPES = frozenset([
    "GRADIENT_LINEAR", "GRADIENT_RADIAL", "GRADIENT_ANGULAR", "GRADIENT_DIAMOND",
])
_LAYOUT_KEYS = (
    "layoutMode", "layoutWrap",
    "primaryAxisSizingMode", "counterAxisSizingMode",
    "primaryAxisAlignItems", "counterAxisAlignItems",
    "itemSpacing",
    "paddingTop", "paddingRight", "paddingBottom", "paddingLeft",
    "layoutPositioning", "constraints",
)


@dataclass
class SectionLink:
    """One row of the index's section list."""
    idx: int
    name: str
    id: str
    file: str
    node_count: int


# ---------------------------------------------------------------------------
# Field formatters
# ---------------------------------------------------------------------------

def _num(value: Any) -> str:
    """Render numbers the way JSON would (no trailing ``.0``)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def bbox_summary(bb: Any) -> Optional[str]:
    """``'120x40 at (0, 16)'`` or None when any coordinate is missing."""
    if not isinstance(bb, dict):
        return None
    if not all(is_number(bb.get(k)) for k in ("x", "y", "width", "height")):
        return None
    return f"{_num(bb['width'])}x{_num(bb['height'])} at ({_num(bb['x'])}, {_num(bb['y'])})"


def format_paint_array(paints: Any) -> str:
    if not isinstance(paints, list) or not paints:
        return "none"
    lines = []
    for p in paints:
        if not isinstance(p, dict):
            continue
        ptype = p.get("type") or "UNKNOWN"
        base = f"{'(hidden) ' if p.get('visible') is False else ''}{ptype}"
        if ptype == "SOLID" and p.get("color"):
            lines.append(f"{base} {hex_from_color(p['color']) or ''}".strip())
        elif ptype in _GRADIENT_TYPES:
            stops = p.get("gradientStops")
            lines.append(f"{base} (stops={len(stops) if isinstance(stops, list) else 0})")
        elif ptype == "IMAGE":
            ref = str(p["imageRef"])[:16] if p.get("imageRef") else "n/a"
            lines.append(f"{base} (imageRef={ref}...)")
        else:
            lines.append(base)
    return "\n".join(lines) if lines else "none"


def format_effects(effects: Any) -> str:
    if not isinstance(effects, list) or not effects:
        return "none"
    lines = []
    for e in effects:
        if not isinstance(e, dict):
            continue
        etype = e.get("type") or "UNKNOWN"
        base = f"{'(hidden) ' if e.get('visible') is False else ''}{etype}"
        radius = e.get("radius")
        if etype in ("DROP_SHADOW", "INNER_SHADOW") and e.get("color"):
            offset = e.get("offset")
            off = (
                f"offset({_num(offset.get('x'))},{_num(offset.get('y'))})"
                if isinstance(offset, dict) else ""
            )
            blur = f"blur({_num(radius)})" if is_number(radius) else ""
            parts = [base, hex_from_color(e["color"]) or "", off, blur]
            lines.append(" ".join(p for p in parts if p))
        elif etype in ("LAYER_BLUR", "BACKGROUND_BLUR"):
            r = f"radius({_num(radius)})" if is_number(radius) else ""
            lines.append(f"{base} {r}".strip())
        else:
            lines.append(base)
    return "\n".join(lines) if lines else "none"


def node_title(node: NormalizedNode) -> str:
    return f'{node.type} "{node.display_name}"'


# ---------------------------------------------------------------------------
# Section content
# ---------------------------------------------------------------------------

def build_tree_lines(nodes: NodeMap, root_id: str) -> List[str]:
    """Indented one-line-per-node layer tree; each node is listed once."""
    lines: List[str] = []
    visited: Set[str] = set()

    def walk(node_id: str, depth: int) -> None:
        n = nodes.get(node_id)
        if n is None or node_id in visited:
            return
        visited.add(node_id)
        known = n.known
        layout_bits = []
        if known.get("layoutMode") == "HORIZONTAL":
            layout_bits.append("auto-layout horizontal")
        elif known.get("layoutMode") == "VERTICAL":
            layout_bits.append("auto-layout vertical")
        if is_number(known.get("itemSpacing")):
            layout_bits.append(f"gap={_num(known['itemSpacing'])}")
        meta = " | ".join(
            m for m in (bbox_summary(known.get("absoluteBoundingBox")), " ".join(layout_bits)) if m
        )

        line = f'{"  " * depth}{n.type} "{n.display_name}" (id: {n.id})'
        lines.append(f"{line} — {meta}" if meta else line)

        for child_id in n.child_ids:
            walk(child_id, depth + 1)

    walk(root_id, 0)
    return lines


def _render_node_detail(n: NormalizedNode, node_path: str, file_key: str) -> List[str]:
    known = n.known
    parts = [
        f"## {node_title(n)} (id: {n.id})",
        "",
        f"- Path: {node_path}",
        f"- File key: {file_key}",
    ]

    if n.type == "INSTANCE":
        comp = f" (componentId: {known['componentId']})" if known.get("componentId") else ""
        parts.append(f"- Instance: true{comp}")

    bb = known.get("absoluteBoundingBox")
    if bb:
        parts.append(f"- Bounds: {bbox_summary(bb) or stable_json(bb)}")
    if is_number(known.get("rotation")):
        parts.append(f"- Rotation: {_num(known['rotation'])}")
    if is_number(known.get("opacity")):
        parts.append(f"- Opacity: {_num(known['opacity'])}")
    if known.get("blendMode"):
        parts.append(f"- Blend mode: {known['blendMode']}")

    layout = {k: known.get(k) for k in _LAYOUT_KEYS if known.get(k) is not None}
    parts += ["", "**Layout / Constraints**", "", "```json", stable_json(layout), "```"]

    parts += ["", "**Paint / Effects**", ""]
    parts += ["- Fills:", "```text", format_paint_array(known.get("fills")), "```"]
    parts += ["- Strokes:", "```text", format_paint_array(known.get("strokes")), "```"]
    if is_number(known.get("strokeWeight")):
        parts.append(f"- Stroke weight: {_num(known['strokeWeight'])}")
    if known.get("strokeAlign"):
        parts.append(f"- Stroke align: {known['strokeAlign']}")
    parts += ["- Effects:", "```text", format_effects(known.get("effects")), "```"]

    if is_number(known.get("cornerRadius")) or isinstance(known.get("rectangleCornerRadii"), list):
        corners = {
            k: known.get(k) for k in ("cornerRadius", "rectangleCornerRadii")
            if known.get(k) is not None
        }
        parts += ["", "**Corners**", "", "```json", stable_json(corners), "```"]

    if n.type == "TEXT":
        chars = known.get("characters") or ""
        fence = fence_for_text(chars)
        text_style = {
            k: known.get(k) for k in ("style", "characterStyleOverrides", "styleOverrideTable")
            if known.get(k) is not None
        }
        parts += ["", "**Text**", "", f"{fence}text", str(chars), fence]
        parts += ["", "```json", stable_json(text_style), "```"]

    if n.is_vector_like:
        parts += [
            "", "**Vector Geometry**", "",
            "- Vector geometry omitted (no path/network data emitted).",
        ]

    parts += ["", "**Children**", "", "```json", stable_json({"childIds": list(n.child_ids)}), "```"]

    parts += ["", "**Implementation Hints (React + TS + twin.macro)**", ""]
    parts.append(f"- Suggested element: `{infer_element(n.type)}`")
    if n.tw:
        parts += ["- Suggested tw:", "```ts", f"tw`{' '.join(n.tw)}`", "```"]
    else:
        parts.append("- Suggested tw: (no strong guess)")

    if n.other:
        parts += ["", "**Other Figma Fields (Unclassified)**", "", "```json", stable_json(dict(n.other)), "```"]

    parts.append("")
    return parts


def build_node_detail_markdown(nodes: NodeMap, root_id: str, file_key: str) -> str:
    """Depth-first detailed spec for every visible node under ``root_id``."""
    parts: List[str] = []
    visited: Set[str] = set()

    def walk(node_id: str, path_parts: List[str]) -> None:
        n = nodes.get(node_id)
        if n is None or node_id in visited:
            return
        visited.add(node_id)
        current = path_parts + [f"{n.display_name} ({n.type})"]
        parts.extend(_render_node_detail(n, " > ".join(current), file_key))
        for child_id in n.child_ids:
            walk(child_id, current)

    walk(root_id, [])
    return "\n".join(parts)


def section_markdown(nodes: NodeMap, root_id: str, file_key: str, section_name: str) -> str:
    header = [
        f"# Section: {section_name}",
        "",
        f"- File key: {file_key}",
        f"- Root node id: {root_id}",
        "",
        "## Layer Tree (Visible Only)",
        "",
        "```text",
        *build_tree_lines(nodes, root_id),
        "```",
        "",
        "## Detailed Spec (Visible Only)",
        "",
    ]
    return "\n".join(header) + build_node_detail_markdown(nodes, root_id, file_key)


# ---------------------------------------------------------------------------
# Index
# ---------------------------------------------------------------------------

_GUIDANCE = [
    "- Treat each section file as a candidate top-level React component or sub-tree to compose into a page component.",
    "- Prefer reproducing auto-layout nodes as `flex` containers; use arbitrary values when spacing/sizing do not match Tailwind scale (`gap-[12px]`, `p-[20px]`).",
    "- For absolute positioning / constraints, translate to `relative` parent + `absolute` children and preserve numeric offsets using arbitrary values.",
    "- Keep typography numeric and explicit (`text-[14px] leading-[20px] tracking-[0.01em]`) unless you already have a token system.",
    "- Vectors: geometry omitted in report; implement as placeholder `svg` or use exported SVGs in a later phase.",
]


def root_snapshot(root: NormalizedNode) -> Dict[str, Any]:
    known = root.known
    snap = {
        'id': root.id,
        'name': root.name,
        'type': root.type,
        'bounds': known.get("absoluteBoundingBox"),
        'layoutMode': known.get("layoutMode"),
        'itemSpacing': known.get("itemSpacing"),
        'padding': {
            k: v for k, v in (
                ('top', known.get("paddingTop")),
                ('right', known.get("paddingRight")),
                ('bottom', known.get("paddingBottom")),
                ('left', known.get("paddingLeft")),
            ) if v is not None
        },
        'childIds': list(root.child_ids),
    }
    return {k: v for k, v in snap.items() if v is not None}


def index_markdown(
    root: NormalizedNode,
    file_key: str,
    sections: List[SectionLink],
    inventories: Inventories,
    generated: datetime = None,
) -> str:
    generated = generated or datetime.now(timezone.utc)
    out = [
        "# Figma Node Report",
        "",
        f"- Generated: {generated.isoformat()}",
        f"- File key: {file_key}",
        f"- Root node id: {root.id}",
        f"- Root node name: {root.display_name}",
        f"- Root node type: {root.type}",
    ]
    if root.known.get("absoluteBoundingBox"):
        out.append(f"- Root bounds: {bbox_summary(root.known['absoluteBoundingBox']) or ''}")
    out.append("")

    out += [
        "## What This Report Contains",
        "",
        "- Visible nodes only (`visible=false` skipped entirely)",
        "- No vector path/network geometry (placeholder only)",
        "- Instances described as-resolved (subtree content as returned by API)",
        "- One section file per top-level child of the target node",
        "",
        "## Root Split (Top-Level Children)",
        "",
    ]
    if not sections:
        out.append("- No visible sections produced (unexpected).")
    for s in sections:
        out.append(f"- {s.idx:02d}. {s.name} (id: {s.id}, nodes: {s.node_count}) -> {s.file}")
    out.append("")

    out += ["## Root Node (Depth=1 Snapshot)", "", "```json", stable_json(root_snapshot(root)), "```", ""]
    out += ["## Implementation Guidance (React + TS + twin.macro)", "", *_GUIDANCE, ""]
    out.append(inventory_markdown(inventories))
    return "\n".join(out)
