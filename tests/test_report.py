"""
Tests for report.py and inventory.py: Markdown rendering from node maps
and style aggregation.
"""

from datetime import datetime, timezone

from figma_crawler.inventory import Inventories, inventory_markdown
from figma_crawler.normalizer import normalize_node
from figma_crawler.report import (
    SectionLink,
    bbox_summary,
    build_node_detail_markdown,
    build_tree_lines,
    format_effects,
    format_paint_array,
    index_markdown,
    root_snapshot,
    section_markdown,
)


RED = {"r": 1, "g": 0, "b": 0, "a": 1}
BLUE = {"r": 0, "g": 0, "b": 1, "a": 1}
BODY_STYLE = {"fontFamily": "Inter", "fontWeight": 400, "fontSize": 14, "lineHeightPx": 20}


def _node_map():
    raw = [
        {
            "id": "1:1", "name": "Card", "type": "FRAME",
            "layoutMode": "VERTICAL", "itemSpacing": 12,
            "absoluteBoundingBox": {"x": 0, "y": 16.0, "width": 320, "height": 200},
            "fills": [{"type": "SOLID", "color": RED}],
            "cornerRadius": 8,
            "children": [{"id": "1:2"}, {"id": "1:3"}, {"id": "1:9"}],
        },
        {
            "id": "1:2", "name": "Title", "type": "TEXT",
            "characters": "Hello ``` world", "style": BODY_STYLE,
            "fills": [{"type": "SOLID", "color": BLUE}],
        },
        {
            "id": "1:3", "name": "Icon", "type": "VECTOR",
            "strokes": [{"type": "SOLID", "color": BLUE}],
            "effects": [{"type": "DROP_SHADOW", "color": {"r": 0, "g": 0, "b": 0, "a": 0.25},
                         "offset": {"x": 0, "y": 2}, "radius": 4}],
            "scrollBehavior": "FIXED",
        },
    ]
    return {d["id"]: normalize_node(d) for d in raw}


class TestFormatters:

    def test_bbox_summary(self):
        assert bbox_summary({"x": 0, "y": 16.0, "width": 320.5, "height": 40}) == "320.5x40 at (0, 16)"
        assert bbox_summary({"x": 0, "y": 0, "width": 10}) is None
        assert bbox_summary(None) is None

    def test_paint_array(self):
        paints = [
            {"type": "SOLID", "color": RED},
            {"type": "SOLID", "visible": False, "color": BLUE},
            {"type": "GRADIENT_LINEAR", "gradientStops": [{}, {}]},
            {"type": "IMAGE", "imageRef": "abcdef0123456789abcdef"},
        ]
        assert format_paint_array(paints).splitlines() == [
            "SOLID #ff0000",
            "(hidden) SOLID #0000ff",
            "GRADIENT_LINEAR (stops=2)",
            "IMAGE (imageRef=abcdef0123456789...)",
        ]
        assert format_paint_array([]) == "none"
        assert format_paint_array(None) == "none"

    def test_effects(self):
        effects = [
            {"type": "DROP_SHADOW", "color": {"r": 0, "g": 0, "b": 0, "a": 0.25},
             "offset": {"x": 0, "y": 2}, "radius": 4},
            {"type": "LAYER_BLUR", "radius": 6.0, "visible": False},
        ]
        assert format_effects(effects).splitlines() == [
            "DROP_SHADOW #000000 @ 0.250 offset(0,2) blur(4)",
            "(hidden) LAYER_BLUR radius(6)",
        ]
        assert format_effects(None) == "none"


def _cyclic_map():
    """Two frames that list each other as children."""
    return {
        "1:1": normalize_node({"id": "1:1", "name": "Outer", "type": "FRAME", "children": [{"id": "1:2"}]}),
        "1:2": normalize_node({"id": "1:2", "name": "Inner", "type": "FRAME", "children": [{"id": "1:1"}]}),
    }


class TestTreeLines:

    def test_indentation_and_meta(self):
        lines = build_tree_lines(_node_map(), "1:1")
        assert lines[0] == (
            'FRAME "Card" (id: 1:1) — 320x200 at (0, 16) | auto-layout vertical gap=12'
        )
        assert lines[1] == '  TEXT "Title" (id: 1:2)'
        assert lines[2] == '  VECTOR "Icon" (id: 1:3)'

    def test_missing_children_left_out(self):
        lines = build_tree_lines(_node_map(), "1:1")
        assert len(lines) == 3
        assert not any("1:9" in line for line in lines)

    def test_unknown_root(self):
        assert build_tree_lines(_node_map(), "nope") == []

    def test_cyclic_children_listed_once(self):
        lines = build_tree_lines(_cyclic_map(), "1:1")
        assert lines == ['FRAME "Outer" (id: 1:1)', '  FRAME "Inner" (id: 1:2)']

    def test_shared_child_listed_once(self):
        nodes = {
            "r": normalize_node({"id": "r", "type": "FRAME", "children": [{"id": "a"}, {"id": "b"}]}),
            "a": normalize_node({"id": "a", "type": "FRAME", "children": [{"id": "s"}]}),
            "b": normalize_node({"id": "b", "type": "FRAME", "children": [{"id": "s"}]}),
            "s": normalize_node({"id": "s", "type": "TEXT"}),
        }
        lines = build_tree_lines(nodes, "r")
        assert len(lines) == 4
        assert sum("(id: s)" in line for line in lines) == 1


class TestNodeDetail:

    def test_paths_and_sections(self):
        md = build_node_detail_markdown(_node_map(), "1:1", "KEY")
        assert '## FRAME "Card" (id: 1:1)' in md
        assert "- Path: Card (FRAME) > Title (TEXT)" in md
        assert "- File key: KEY" in md
        assert "tw`flex flex-col gap-[12px] bg-[#ff0000] rounded-[8px]`" in md

    def test_text_uses_longer_fence(self):
        md = build_node_detail_markdown(_node_map(), "1:1", "KEY")
        assert "````text\nHello ``` world\n````" in md

    def test_vector_placeholder_and_other_fields(self):
        md = build_node_detail_markdown(_node_map(), "1:1", "KEY")
        assert "**Vector Geometry**" in md
        assert "Vector geometry omitted" in md
        assert "**Other Figma Fields (Unclassified)**" in md
        assert '"scrollBehavior": "FIXED"' in md

    def test_no_tw_guess(self):
        nodes = {"2:1": normalize_node({"id": "2:1", "name": "Plain", "type": "GROUP"})}
        md = build_node_detail_markdown(nodes, "2:1", "KEY")
        assert "- Suggested tw: (no strong guess)" in md
        assert "- Suggested element: `div`" in md

    def test_section_markdown(self):
        md = section_markdown(_node_map(), "1:1", "KEY", "Card")
        assert md.startswith("# Section: Card\n")
        assert "## Layer Tree (Visible Only)" in md
        assert "## Detailed Spec (Visible Only)" in md
        assert md.index("## Layer Tree") < md.index('## FRAME "Card"')

    def test_cyclic_map_terminates(self):
        md = section_markdown(_cyclic_map(), "1:1", "KEY", "Loop")
        assert md.count('## FRAME "Outer" (id: 1:1)') == 1
        assert md.count('## FRAME "Inner" (id: 1:2)') == 1
        assert "- Path: Outer (FRAME) > Inner (FRAME)" in md


class TestIndex:

    def test_index_lists_sections(self):
        nodes = _node_map()
        root = nodes["1:1"]
        inv = Inventories()
        inv.collect_all(nodes.values())
        sections = [SectionLink(idx=1, name="Title", id="1:2", file="sections/01-title-1-2.md", node_count=1)]
        md = index_markdown(root, "KEY", sections, inv,
                            generated=datetime(2024, 1, 2, tzinfo=timezone.utc))

        assert md.startswith("# Figma Node Report\n")
        assert "- Generated: 2024-01-02T00:00:00+00:00" in md
        assert "- Root bounds: 320x200 at (0, 16)" in md
        assert "## Root Split (Top-Level Children)" in md
        assert "- 01. Title (id: 1:2, nodes: 1) -> sections/01-title-1-2.md" in md
        assert "## Typography Inventory (Subtree)" in md

    def test_no_sections(self):
        root = normalize_node({"id": "1:1", "name": "Empty", "type": "FRAME"})
        md = index_markdown(root, "KEY", [], Inventories())
        assert "- No visible sections produced (unexpected)." in md

    def test_root_snapshot_drops_absent_fields(self):
        snap = root_snapshot(_node_map()["1:1"])
        assert snap["childIds"] == ["1:2", "1:3", "1:9"]
        assert snap["layoutMode"] == "VERTICAL"
        assert snap["padding"] == {}
        assert "name" in snap


class TestInventories:

    def test_colors_from_fills_and_strokes(self):
        inv = Inventories()
        inv.collect_all(_node_map().values())
        assert inv.color_entries() == [
            {"hex": "#0000ff", "count": 2},
            {"hex": "#ff0000", "count": 1},
        ]

    def test_hidden_paints_ignored(self):
        inv = Inventories()
        inv.collect(normalize_node({"id": "1", "fills": [
            {"type": "SOLID", "visible": False, "color": RED},
            {"type": "GRADIENT_LINEAR"},
        ]}))
        assert inv.color_entries() == []

    def test_typography_collapses_equal_styles(self):
        inv = Inventories()
        for i in range(2):
            inv.collect(normalize_node({
                "id": str(i), "type": "TEXT",
                # Same style, different key order and an unrelated key
                "style": dict(reversed(list(BODY_STYLE.items())), textAutoResize="HEIGHT"),
            }))
        entries = inv.typography_entries()
        assert len(entries) == 1
        assert entries[0]["count"] == 2
        assert entries[0]["style"] == BODY_STYLE

    def test_typography_only_from_text(self):
        inv = Inventories()
        inv.collect(normalize_node({"id": "1", "type": "FRAME", "style": BODY_STYLE}))
        assert inv.typography_entries() == []

    def test_effects(self):
        inv = Inventories()
        inv.collect_all(_node_map().values())
        entries = inv.effect_entries()
        assert len(entries) == 1
        assert entries[0]["effect"]["type"] == "DROP_SHADOW"

    def test_markdown(self):
        md = inventory_markdown(Inventories())
        assert md.count("- none") == 3
        inv = Inventories()
        inv.collect_all(_node_map().values())
        md = inventory_markdown(inv)
        assert "- Unique colors: 2" in md

    def test_to_dict(self):
        inv = Inventories()
        inv.collect_all(_node_map().values())
        d = inv.to_dict()
        assert set(d) == {"typography", "colors", "effects"}
