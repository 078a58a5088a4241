"""
Structured Word Document Exporter
===================================
Produces a DOCX version of the Figma node report.

Features:
- Cover page with file key, root node and crawl statistics
- Auto-generated Table of Contents (TOC)
- One Heading 1 per section with its layer tree in monospace
- Per-node Heading 2/3 entries with bounds, layout, paint and text
- Colour inventory rendered as a Word table
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Mapping, Set, TYPE_CHECKING

from .normalizer import NormalizedNode, infer_element
from .report import bbox_summary, build_tree_lines, format_effects, format_paint_array

if TYPE_CHECKING:
    from .pipeline import ReportOutput

logger = logging.getLogger(__name__)


def export_docx(
    output: "ReportOutput",
    filepath: str,
    *,
    include_toc: bool = True,
    max_nodes_per_section: int = 500,
) -> str:
    """
    Export a finished report to a Word document.

    Args:
        output: ReportOutput from ``ReportPipeline.run``
        filepath: Output .docx path
        include_toc: Whether to insert a TOC field
        max_nodes_per_section: Node detail cap per section

    Returns:
        Absolute path to the created file
    """
    from docx import Document
    from docx.enum.table import WD_TABLE_ALIGNMENT
    from docx.enum.text import WD_ALIGN_PARAGRAPH
    from docx.shared import Pt

    output_path = Path(filepath)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    doc = Document()

    style = doc.styles["Normal"]
    style.font.name = "Calibri"
    style.font.size = Pt(10)
    style.paragraph_format.space_after = Pt(4)

    # ── Cover Page ─────────────────────────────────────────────────
    title = doc.add_heading("Figma Node Report", level=0)
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER

    metrics = output.metrics
    root = output.root
    summary_items = [
        ("File Key", output.file_key),
        ("Root Node", f"{root.display_name} ({root.type}, id {root.id})"),
        ("Sections", str(len(output.sections))),
        ("Visible Nodes", str(output.node_count)),
        ("API Requests", str(metrics.requests)),
        ("Retries", str(metrics.retries)),
        ("Skipped (hidden)", str(metrics.skipped_invisible)),
        ("Elapsed Time", f"{metrics.elapsed_sec}s"),
    ]
    summary_table = doc.add_table(rows=len(summary_items), cols=2)
    summary_table.alignment = WD_TABLE_ALIGNMENT.CENTER
    for i, (label, value) in enumerate(summary_items):
        row = summary_table.rows[i]
        _cell_text(row.cells[0], label, bold=True, size=Pt(10))
        _cell_text(row.cells[1], value, size=Pt(10))

    doc.add_page_break()

    if include_toc:
        doc.add_heading("Table of Contents", level=1)
        _add_toc_field(doc)
        doc.add_page_break()

    # ── Per-Section Content ────────────────────────────────────────
    for idx, (link, crawl) in enumerate(zip(output.sections, output.crawls)):
        doc.add_heading(f"{link.idx:02d}. {link.name}"[:120], level=1)
        _meta_line(doc, "Root node id", link.id)
        _meta_line(doc, "Nodes", str(link.node_count))

        doc.add_heading("Layer Tree", level=2)
        _monospace_block(doc, "\n".join(build_tree_lines(crawl.nodes, link.id)))

        _render_nodes(doc, crawl.nodes, link.id, max_nodes_per_section)

        if idx < len(output.sections) - 1:
            doc.add_page_break()

    # ── Colour Inventory ───────────────────────────────────────────
    colors = output.inventories.color_entries()
    if colors:
        doc.add_page_break()
        doc.add_heading("Color Inventory", level=1)
        table = doc.add_table(rows=len(colors) + 1, cols=2)
        table.style = "Table Grid"
        _cell_text(table.rows[0].cells[0], "Color", bold=True, size=Pt(9))
        _cell_text(table.rows[0].cells[1], "Count", bold=True, size=Pt(9))
        for row, entry in zip(table.rows[1:], colors):
            _cell_text(row.cells[0], entry["hex"], size=Pt(9))
            _cell_text(row.cells[1], str(entry["count"]), size=Pt(9))

    doc.save(str(output_path))
    logger.info(f"Exported DOCX to {output_path.absolute()}")
    return str(output_path.absolute())


# ---------------------------------------------------------------------------
# Per-node rendering
# ---------------------------------------------------------------------------

def _render_nodes(doc, nodes: Mapping[str, NormalizedNode], root_id: str, limit: int) -> None:
    """Depth-first node details; headings capped at level 3."""
    from docx.shared import Pt

    order: List[tuple] = []
    visited: Set[str] = set()

    def walk(node_id: str, depth: int) -> None:
        n = nodes.get(node_id)
        if n is None or node_id in visited or len(order) >= limit:
            return
        visited.add(node_id)
        order.append((n, depth))
        for child_id in n.child_ids:
            walk(child_id, depth + 1)

    walk(root_id, 0)

    for n, depth in order:
        doc.add_heading(f'{n.type} "{n.display_name}"'[:100], level=2 if depth == 0 else 3)
        known = n.known

        bounds = bbox_summary(known.get("absoluteBoundingBox"))
        if bounds:
            _meta_line(doc, "Bounds", bounds)
        if known.get("layoutMode") and known.get("layoutMode") != "NONE":
            _meta_line(doc, "Auto layout", str(known["layoutMode"]).lower())
        _meta_line(doc, "Element", infer_element(n.type))
        if n.tw:
            _meta_line(doc, "tw", " ".join(n.tw))

        fills = format_paint_array(known.get("fills"))
        if fills != "none":
            _meta_line(doc, "Fills", fills.replace("\n", "; "))
        effects = format_effects(known.get("effects"))
        if effects != "none":
            _meta_line(doc, "Effects", effects.replace("\n", "; "))

        if n.type == "TEXT" and known.get("characters"):
            p = doc.add_paragraph(str(known["characters"])[:2000])
            for run in p.runs:
                run.font.italic = True
                run.font.size = Pt(9)

    if len(order) >= limit:
        p = doc.add_paragraph(f"[... truncated at {limit} nodes ...]")
        p.runs[0].font.italic = True


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _meta_line(doc, label: str, value: str) -> None:
    from docx.shared import Pt

    para = doc.add_paragraph()
    label_run = para.add_run(f"{label}: ")
    label_run.bold = True
    label_run.font.size = Pt(9)
    value_run = para.add_run(value)
    value_run.font.size = Pt(9)


def _monospace_block(doc, content: str) -> None:
    """Monospace paragraph with light shading."""
    from docx.oxml import OxmlElement
    from docx.oxml.ns import qn
    from docx.shared import Pt

    if not content:
        return
    p = doc.add_paragraph()
    run = p.add_run(content[:20000])
    run.font.name = "Consolas"
    run.font.size = Pt(8)

    shading = OxmlElement("w:shd")
    shading.set(qn("w:fill"), "F5F5F5")
    shading.set(qn("w:val"), "clear")
    p.paragraph_format.element.get_or_add_pPr().append(shading)


def _cell_text(cell, text: str, bold: bool = False, size=None) -> None:
    """Set cell text with formatting."""
    cell.text = text
    for paragraph in cell.paragraphs:
        for run in paragraph.runs:
            run.bold = bold
            if size:
                run.font.size = size


def _add_toc_field(doc) -> None:
    """Insert a Word TOC field code (updates on open in Word)."""
    from docx.oxml import OxmlElement
    from docx.oxml.ns import qn

    paragraph = doc.add_paragraph()
    run = paragraph.add_run()

    fld_begin = OxmlElement("w:fldChar")
    fld_begin.set(qn("w:fldCharType"), "begin")
    run._element.append(fld_begin)

    instr = OxmlElement("w:instrText")
    instr.set(qn("xml:space"), "preserve")
    instr.text = ' TOC \\o "1-3" \\h \\z \\u '
    run._element.append(instr)

    fld_separate = OxmlElement("w:fldChar")
    fld_separate.set(qn("w:fldCharType"), "separate")
    run._element.append(fld_separate)

    placeholder = paragraph.add_run("[Open in Microsoft Word and press F9 to update Table of Contents]")
    placeholder.font.italic = True

    end_run = paragraph.add_run()
    fld_end = OxmlElement("w:fldChar")
    fld_end.set(qn("w:fldCharType"), "end")
    end_run._element.append(fld_end)
