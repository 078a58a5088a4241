"""
Style Inventories
=================
Aggregates typography, solid colours and effects across crawled nodes.
Keys are stable JSON so that equal styles collapse regardless of dict order.
"""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Tuple

from .normalizer import NormalizedNode
from .utils import hex_from_color, stable_json

_TYPOGRAPHY_KEYS = (
    "fontFamily", "fontPostScriptName", "fontWeight", "fontSize",
    "lineHeightPx", "lineHeightPercent", "lineHeightPercentFontSize",
    "letterSpacing", "paragraphSpacing", "textCase", "textDecoration",
)
_EFFECT_KEYS = (
    "type", "radius", "spread", "offset", "color", "blendMode",
    "showShadowBehindNode",
)


def _subset_key(source: dict, keys: Tuple[str, ...]) -> str:
    return stable_json({k: source.get(k) for k in keys if source.get(k) is not None})


@dataclass
class Inventories:
    typography: Counter = field(default_factory=Counter)
    colors: Counter = field(default_factory=Counter)
    effects: Counter = field(default_factory=Counter)

    def collect(self, node: NormalizedNode) -> None:
        known = node.known

        style = known.get("style")
        if node.type == "TEXT" and isinstance(style, dict):
            self.typography[_subset_key(style, _TYPOGRAPHY_KEYS)] += 1

        for paints in (known.get("fills"), known.get("strokes")):
            if not isinstance(paints, list):
                continue
            for paint in paints:
                if not isinstance(paint, dict) or paint.get("visible") is False:
                    continue
                if paint.get("type") != "SOLID" or not paint.get("color"):
                    continue
                hex_str = hex_from_color(paint["color"])
                if hex_str:
                    self.colors[hex_str] += 1

        effects = known.get("effects")
        if isinstance(effects, list):
            for effect in effects:
                if not isinstance(effect, dict) or effect.get("visible") is False:
                    continue
                self.effects[_subset_key(effect, _EFFECT_KEYS)] += 1

    def collect_all(self, nodes: Iterable[NormalizedNode]) -> None:
        for node in nodes:
            self.collect(node)

    # Sorted by count, descending; ties keep first-seen order
    def typography_entries(self) -> List[dict]:
        return [{'count': c, 'style': json.loads(k)} for k, c in self.typography.most_common()]

    def color_entries(self) -> List[dict]:
        return [{'hex': k, 'count': c} for k, c in self.colors.most_common()]

    def effect_entries(self) -> List[dict]:
        return [{'count': c, 'effect': json.loads(k)} for k, c in self.effects.most_common()]

    def to_dict(self) -> dict:
        return {
            'typography': self.typography_entries(),
            'colors': self.color_entries(),
            'effects': self.effect_entries(),
        }


def inventory_markdown(inv: Inventories) -> str:
    out: List[str] = []

    def section(title: str, label: str, entries: List[Any]) -> None:
        out.append(f"## {title}")
        out.append("")
        if not entries:
            out.append("- none")
        else:
            out.append(f"- Unique {label}: {len(entries)}")
            out.append("")
            out.append("```json")
            out.append(stable_json(entries))
            out.append("```")
        out.append("")

    section("Typography Inventory (Subtree)", "styles", inv.typography_entries())
    section("Color Inventory (Subtree, Solid Paints Only)", "colors", inv.color_entries())
    section("Effects Inventory (Subtree)", "effects", inv.effect_entries())
    return "\n".join(out)
