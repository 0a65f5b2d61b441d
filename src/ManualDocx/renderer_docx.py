from __future__ import annotations

import logging
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

from docx import Document as DocxDocument
from docx.enum.section import WD_SECTION
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.image.exceptions import UnrecognizedImageError
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Emu, Twips

from . import manual_format
from .config import Options
from .diagrams import diagram_size, is_diagram
from .inline import resolve_inline
from .model import (
    BlockQuote,
    ChangelogRecord,
    CodeBlock,
    Document,
    Heading,
    HorizontalRule,
    ImageBlock,
    InlineBreak,
    InlineElement,
    InlineImage,
    InlineText,
    LineBreak,
    ListBlock,
    NumberingDefinition,
    PageBreak,
    Paragraph,
    PlacedBlock,
    TableBlock,
)
from .structure import SECTION_INDENT, numbering_definitions, track_structure

logger = logging.getLogger(__name__)

EMU_PER_PX = 9525
LIST_INDENT = 720
LIST_HANGING = 360
QUOTE_INDENT = 720
CODE_INDENT = 360
DEFAULT_IMAGE_WIDTH_PX = 400
DEFAULT_IMAGE_HEIGHT_PX = 300
LOGO_SIZE_PX = 150
HISTORY_COLUMN_WIDTHS = (1800, 2000, 5226)
DIAGRAM_FAILED_TEXT = "[Mermaid diagram: Rendering failed - API connection error or offline]"


@dataclass
class RenderState:
    options: Options
    asset_root: Path | None = None
    diagrams: Mapping[str, Optional[bytes]] = field(default_factory=dict)
    numbering_ids: dict[str, int] = field(default_factory=dict)


def render_document(
    doc: Document,
    output_path: str | Path,
    options: Options | None = None,
    diagrams: Mapping[str, Optional[bytes]] | None = None,
    asset_root: Path | None = None,
) -> Path:
    """Assemble the manual (cover, history, contents, body) and save it as DOCX."""
    output_path = Path(output_path)
    state = RenderState(options=options or Options(), asset_root=asset_root, diagrams=diagrams or {})
    docx = build_docx(doc, state)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    docx.save(output_path)
    return output_path


def build_docx(doc: Document, state: RenderState):
    docx = DocxDocument()
    manual_format.apply_default_style(docx)

    cover = docx.sections[0]
    manual_format.apply_page_layout(cover)
    _render_header(cover, state.options)
    _render_footer(cover)
    _render_cover(docx, state)

    _new_section(docx)
    _render_history(docx, doc.changelog, state.options)

    _new_section(docx)
    _render_toc(docx)

    _new_section(docx)
    placed = track_structure(doc.blocks)
    state.numbering_ids = _bind_numbering(docx, numbering_definitions(placed))
    for item in placed:
        _dispatch_block(docx, item, state)
    return docx


def _new_section(docx) -> None:
    section = docx.add_section(WD_SECTION.NEW_PAGE)
    manual_format.apply_page_layout(section)


def _dispatch_block(docx, item: PlacedBlock, state: RenderState) -> None:
    block = item.block
    if isinstance(block, Heading):
        _render_heading(docx, block, item.indent)
    elif isinstance(block, Paragraph):
        paragraph = docx.add_paragraph()
        paragraph.paragraph_format.left_indent = Twips(item.indent)
        _add_inline_runs(paragraph, resolve_inline(block.text, state.asset_root))
    elif isinstance(block, ListBlock):
        _render_list(docx, block, item, state)
    elif isinstance(block, CodeBlock) and is_diagram(block):
        _render_diagram(docx, block, item.indent, state)
    elif isinstance(block, CodeBlock):
        _render_code_block(docx, block, item.indent)
    elif isinstance(block, TableBlock):
        _render_table(docx, block, item.indent, state)
    elif isinstance(block, BlockQuote):
        _render_blockquote(docx, block, item.indent)
    elif isinstance(block, ImageBlock):
        _render_image_block(docx, block, item.indent, state)
    elif isinstance(block, HorizontalRule):
        if state.options.hr_pagebreak:
            docx.add_page_break()
        else:
            paragraph = docx.add_paragraph()
            paragraph.paragraph_format.left_indent = Twips(item.indent)
            manual_format.set_paragraph_border(paragraph, "bottom", 6, manual_format.RULE_COLOR)
    elif isinstance(block, PageBreak):
        docx.add_page_break()
    elif isinstance(block, LineBreak):
        paragraph = docx.add_paragraph()
        paragraph.paragraph_format.left_indent = Twips(item.indent)


def _render_heading(docx, heading: Heading, indent: int) -> None:
    paragraph = docx.add_heading(heading.text, level=min(heading.level, 3))
    manual_format.apply_heading_format(paragraph, heading.level, indent)


def _add_inline_runs(paragraph, runs: Iterable[InlineElement]) -> None:
    for inline in runs:
        if isinstance(inline, InlineText):
            run = paragraph.add_run(inline.text)
            manual_format.set_run_font(
                run,
                bold=inline.bold,
                italic=inline.italic,
                strike=inline.strike,
                code=inline.code,
                color=manual_format.ERROR_COLOR if inline.error else None,
            )
        elif isinstance(inline, InlineBreak):
            paragraph.add_run().add_break()
        elif isinstance(inline, InlineImage):
            run = paragraph.add_run()
            try:
                run.add_picture(
                    BytesIO(inline.data),
                    width=Emu(inline.width * EMU_PER_PX),
                    height=Emu(inline.height * EMU_PER_PX),
                )
            except UnrecognizedImageError:
                logger.warning("Unsupported inline image format: %s", inline.src)
                run.text = "[Image error]"
                manual_format.set_run_font(run, color=manual_format.ERROR_COLOR)


def _bind_numbering(docx, definitions: List[NumberingDefinition]) -> dict[str, int]:
    """Create one decimal numbering definition per numbered list and return ref -> numId."""
    if not definitions:
        return {}
    numbering = docx.part.numbering_part.element
    abstract_ids = [int(el.get(qn("w:abstractNumId"))) for el in numbering.findall(qn("w:abstractNum"))]
    next_abstract = max(abstract_ids, default=-1) + 1
    bound: dict[str, int] = {}
    for offset, definition in enumerate(definitions):
        abstract_id = next_abstract + offset
        abstract = _decimal_abstract_num(abstract_id, definition.indent + LIST_INDENT)
        first_num = numbering.find(qn("w:num"))
        if first_num is not None:
            first_num.addprevious(abstract)
        else:
            numbering.append(abstract)
        num = numbering.add_num(abstract_id)
        bound[definition.reference] = num.numId
    return bound


def _decimal_abstract_num(abstract_id: int, left: int):
    abstract = OxmlElement("w:abstractNum")
    abstract.set(qn("w:abstractNumId"), str(abstract_id))
    multi = OxmlElement("w:multiLevelType")
    multi.set(qn("w:val"), "singleLevel")
    abstract.append(multi)
    lvl = OxmlElement("w:lvl")
    lvl.set(qn("w:ilvl"), "0")
    for tag, value in (("w:start", "1"), ("w:numFmt", "decimal"), ("w:lvlText", "%1."), ("w:lvlJc", "left")):
        child = OxmlElement(tag)
        child.set(qn("w:val"), value)
        lvl.append(child)
    ppr = OxmlElement("w:pPr")
    ind = OxmlElement("w:ind")
    ind.set(qn("w:left"), str(left))
    ind.set(qn("w:hanging"), str(LIST_HANGING))
    ppr.append(ind)
    lvl.append(ppr)
    abstract.append(lvl)
    return abstract


def _render_list(docx, block: ListBlock, item: PlacedBlock, state: RenderState) -> None:
    for entry in block.items:
        paragraph = docx.add_paragraph()
        runs = resolve_inline(entry.text, state.asset_root)
        if block.ordered and entry.level == 0:
            num_pr = paragraph._p.get_or_add_pPr().get_or_add_numPr()
            num_pr.get_or_add_ilvl().val = 0
            num_pr.get_or_add_numId().val = state.numbering_ids[item.numbering_ref]
            _add_inline_runs(paragraph, runs)
            continue
        # nested items of numbered lists fall back to a plain dash
        bullet = "・" if block.kind == "bullet" and entry.level == 0 else "-"
        fmt = paragraph.paragraph_format
        fmt.left_indent = Twips(item.indent + LIST_INDENT + entry.level * SECTION_INDENT)
        fmt.first_line_indent = Twips(-LIST_HANGING)
        marker = paragraph.add_run(f"{bullet}\t")
        manual_format.set_run_font(marker)
        _add_inline_runs(paragraph, runs)


def _render_code_block(docx, block: CodeBlock, indent: int) -> None:
    for line in block.content.split("\n"):
        paragraph = docx.add_paragraph()
        paragraph.paragraph_format.left_indent = Twips(indent + CODE_INDENT)
        paragraph.paragraph_format.space_after = Twips(0)
        manual_format.shade_paragraph(paragraph, manual_format.CODE_SHADING)
        run = paragraph.add_run(line or " ")
        manual_format.set_run_font(run, size=manual_format.SMALL_FONT_SIZE_PT)


def _render_diagram(docx, block: CodeBlock, indent: int, state: RenderState) -> None:
    data = state.diagrams.get(block.content)
    paragraph = docx.add_paragraph()
    paragraph.paragraph_format.left_indent = Twips(indent)
    if data:
        width, height = diagram_size(data, indent)
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        try:
            paragraph.add_run().add_picture(
                BytesIO(data), width=Emu(width * EMU_PER_PX), height=Emu(height * EMU_PER_PX)
            )
            return
        except UnrecognizedImageError:
            logger.warning("Diagram service returned an unsupported image")
            paragraph.alignment = None
    manual_format.shade_paragraph(paragraph, manual_format.WARNING_FILL)
    manual_format.set_paragraph_border(paragraph, "left", 12, manual_format.WARNING_BORDER)
    run = paragraph.add_run(DIAGRAM_FAILED_TEXT)
    manual_format.set_run_font(run, size=manual_format.SMALL_FONT_SIZE_PT, color=manual_format.WARNING_TEXT)


def _render_table(docx, block: TableBlock, indent: int, state: RenderState) -> None:
    col_count = max((len(row) for row in block.rows), default=0) or 1
    col_width = (manual_format.CONTENT_WIDTH_TWIPS - indent) // col_count
    table = docx.add_table(rows=len(block.rows), cols=col_count)
    table.style = "Table Grid"
    table.autofit = False
    manual_format.set_table_indent(table, indent)
    for r_idx, row in enumerate(block.rows):
        if r_idx == 0:
            manual_format.mark_header_row(table.rows[0])
        for c_idx in range(col_count):
            cell = table.cell(r_idx, c_idx)
            cell.width = Twips(col_width)
            if r_idx == 0:
                manual_format.shade_cell(cell, manual_format.TABLE_HEADER_SHADING)
            text = row[c_idx] if c_idx < len(row) else ""
            _add_inline_runs(cell.paragraphs[0], resolve_inline(text, state.asset_root))


def _render_blockquote(docx, block: BlockQuote, indent: int) -> None:
    paragraph = docx.add_paragraph()
    paragraph.paragraph_format.left_indent = Twips(indent + QUOTE_INDENT)
    manual_format.set_paragraph_border(paragraph, "left", 24, manual_format.QUOTE_BORDER_COLOR)
    run = paragraph.add_run(block.text)
    manual_format.set_run_font(run, italic=True)


def resolve_asset(src: str, asset_root: Path | None) -> Path:
    path = Path(src)
    if path.is_absolute() or asset_root is None:
        return path
    return asset_root / src


def block_image_size(block: ImageBlock) -> tuple[int, int]:
    width = block.width or DEFAULT_IMAGE_WIDTH_PX
    if block.height:
        height = block.height
    elif block.width:
        height = round(block.width * 0.75)
    else:
        height = DEFAULT_IMAGE_HEIGHT_PX
    return width, height


def _render_image_block(docx, block: ImageBlock, indent: int, state: RenderState) -> None:
    paragraph = docx.add_paragraph()
    paragraph.paragraph_format.left_indent = Twips(indent)
    image_path = resolve_asset(block.src, state.asset_root)
    if not image_path.exists():
        logger.warning("Image not found: %s", image_path)
        run = paragraph.add_run(f"[Image: {block.src}]")
        manual_format.set_run_font(run, color=manual_format.ERROR_COLOR)
        return
    width, height = block_image_size(block)
    try:
        paragraph.add_run().add_picture(
            str(image_path), width=Emu(width * EMU_PER_PX), height=Emu(height * EMU_PER_PX)
        )
    except (OSError, UnrecognizedImageError) as exc:
        logger.warning("Failed to load image %s: %s", image_path, exc)
        run = paragraph.add_run(f"[Image load error: {block.src}]")
        manual_format.set_run_font(run, color=manual_format.ERROR_COLOR)
        return
    paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER


def _render_header(section, options: Options) -> None:
    header = section.header
    left_width = int(manual_format.CONTENT_WIDTH_TWIPS * 0.6)
    right_width = manual_format.CONTENT_WIDTH_TWIPS - left_width
    table = header.add_table(rows=1, cols=2, width=Twips(manual_format.CONTENT_WIDTH_TWIPS))
    texts = (
        f"{options.title} {options.doctype} Version {options.version}",
        f"Document No.: {options.docnum}",
    )
    for idx, (text, width) in enumerate(zip(texts, (left_width, right_width))):
        cell = table.cell(0, idx)
        cell.width = Twips(width)
        manual_format.set_cell_borders(
            cell, size=24, color=options.colors.header_border, top="nil", left="nil", right="nil"
        )
        paragraph = cell.paragraphs[0]
        if idx == 1:
            paragraph.alignment = WD_ALIGN_PARAGRAPH.RIGHT
        run = paragraph.add_run(text)
        manual_format.set_run_font(run, size=manual_format.HEADER_FONT_SIZE_PT, color="000000")


def _render_footer(section) -> None:
    paragraph = section.footer.paragraphs[0]
    paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
    manual_format.set_run_font(paragraph.add_run("- "))
    manual_format.add_field(paragraph, "PAGE")
    manual_format.set_run_font(paragraph.add_run(" -"))


def _centered(docx, text: str, size: float, bold: bool = False, before: int = 0, after: int = 0):
    paragraph = docx.add_paragraph()
    paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
    paragraph.paragraph_format.space_before = Twips(before)
    paragraph.paragraph_format.space_after = Twips(after)
    if text:
        run = paragraph.add_run(text)
        manual_format.set_run_font(run, bold=bold, size=size, color="000000")
    return paragraph


def _render_cover(docx, state: RenderState) -> None:
    options = state.options
    _centered(docx, "", manual_format.FONT_SIZE_PT, before=2400)
    _centered(docx, f"{options.title} {options.subtitle}", 24, bold=True)
    _centered(docx, options.doctype, 18, after=240)
    _centered(docx, f"Version {options.version}", 14, before=480, after=480)
    _centered(docx, "", manual_format.FONT_SIZE_PT, before=1200)
    for text in (options.date, options.company, options.dept):
        _centered(docx, text, 12)

    if not options.logo:
        return
    logo_path = resolve_asset(options.logo, state.asset_root)
    if not logo_path.exists():
        logger.warning("Logo image not found: %s", logo_path)
        return
    paragraph = _centered(docx, "", manual_format.FONT_SIZE_PT, before=480)
    size = Emu(LOGO_SIZE_PX * EMU_PER_PX)
    try:
        paragraph.add_run().add_picture(str(logo_path), width=size, height=size)
    except (OSError, UnrecognizedImageError) as exc:
        logger.warning("Failed to load logo image: %s", exc)


def history_rows(changelog: List[ChangelogRecord] | None, options: Options) -> List[ChangelogRecord]:
    if changelog:
        return list(changelog)
    return [ChangelogRecord(version=options.version, date=options.date, description="Initial release")]


def _render_history(docx, changelog: List[ChangelogRecord] | None, options: Options) -> None:
    title = docx.add_paragraph()
    manual_format.set_run_font(title.add_run("[Change History]"), bold=True)

    rows = history_rows(changelog, options)
    table = docx.add_table(rows=1 + len(rows), cols=3)
    table.style = "Table Grid"
    table.autofit = False
    manual_format.mark_header_row(table.rows[0])
    labels = ("Version", "Date", "Description")
    for r_idx, values in enumerate([labels] + [(r.version, r.date, r.description) for r in rows]):
        for c_idx, text in enumerate(values):
            cell = table.cell(r_idx, c_idx)
            cell.width = Twips(HISTORY_COLUMN_WIDTHS[c_idx])
            paragraph = cell.paragraphs[0]
            if r_idx == 0 or c_idx < 2:
                paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
            if r_idx == 0:
                manual_format.shade_cell(cell, options.colors.table_header)
            run = paragraph.add_run(text)
            manual_format.set_run_font(run, bold=r_idx == 0, size=manual_format.SMALL_FONT_SIZE_PT)


def _render_toc(docx) -> None:
    title = docx.add_paragraph()
    manual_format.set_run_font(title.add_run("Table of Contents"), bold=True, size=14)
    manual_format.add_field(docx.add_paragraph(), 'TOC \\o "1-3" \\h \\z \\u')
