from __future__ import annotations

from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Pt, RGBColor, Twips

PAGE_WIDTH_TWIPS = 11906
PAGE_HEIGHT_TWIPS = 16838
MARGIN_TWIPS = 1440
CONTENT_WIDTH_TWIPS = PAGE_WIDTH_TWIPS - MARGIN_TWIPS * 2

FONT_NAME = "Meiryo"
FONT_SIZE_PT = 11
SMALL_FONT_SIZE_PT = 10
HEADER_FONT_SIZE_PT = 9

HEADING_SIZES_PT = {1: 14, 2: 12, 3: 11}
HEADING_SPACING_TWIPS = {1: (360, 240), 2: (240, 180), 3: (180, 120)}

CODE_SHADING = "F5F5F5"
INLINE_CODE_SHADING = "E8E8E8"
TABLE_HEADER_SHADING = "D9D9D9"
QUOTE_BORDER_COLOR = "CCCCCC"
RULE_COLOR = "CCCCCC"
ERROR_COLOR = "FF0000"
WARNING_FILL = "FFF3CD"
WARNING_BORDER = "FFC107"
WARNING_TEXT = "856404"

# Successors of w:pBdr / w:shd inside w:pPr, in schema order.
_PPR_AFTER_SHD = (
    "w:tabs", "w:suppressAutoHyphens", "w:kinsoku", "w:wordWrap", "w:overflowPunct",
    "w:topLinePunct", "w:autoSpaceDE", "w:autoSpaceDN", "w:bidi", "w:adjustRightInd",
    "w:snapToGrid", "w:spacing", "w:ind", "w:contextualSpacing", "w:mirrorIndents",
    "w:suppressOverlap", "w:jc", "w:textDirection", "w:textAlignment", "w:textboxTightWrap",
    "w:outlineLvl", "w:divId", "w:cnfStyle", "w:rPr", "w:sectPr", "w:pPrChange",
)
_RPR_AFTER_SHD = (
    "w:fitText", "w:vertAlign", "w:rtl", "w:cs", "w:em", "w:lang",
    "w:eastAsianLayout", "w:specVanish", "w:oMath",
)
_TCPR_AFTER_SHD = (
    "w:noWrap", "w:tcMar", "w:textDirection", "w:tcFitText", "w:vAlign", "w:hideMark",
)
_TCPR_AFTER_BORDERS = ("w:shd",) + _TCPR_AFTER_SHD


def apply_page_layout(section) -> None:
    """Apply A4 page size and one-inch margins."""
    section.page_width = Twips(PAGE_WIDTH_TWIPS)
    section.page_height = Twips(PAGE_HEIGHT_TWIPS)
    section.left_margin = Twips(MARGIN_TWIPS)
    section.right_margin = Twips(MARGIN_TWIPS)
    section.top_margin = Twips(MARGIN_TWIPS)
    section.bottom_margin = Twips(MARGIN_TWIPS)


def set_run_font(
    run,
    bold: bool = False,
    italic: bool = False,
    strike: bool = False,
    code: bool = False,
    size: float = FONT_SIZE_PT,
    color: str | None = None,
) -> None:
    run.font.name = FONT_NAME
    run._element.get_or_add_rPr().get_or_add_rFonts().set(qn("w:eastAsia"), FONT_NAME)
    run.font.size = Pt(size)
    run.bold = bold
    run.italic = italic
    run.font.strike = strike
    if color:
        run.font.color.rgb = RGBColor.from_string(color)
    if code:
        shade_run(run, INLINE_CODE_SHADING)


def apply_default_style(docx) -> None:
    style = docx.styles["Normal"]
    style.font.name = FONT_NAME
    style.font.size = Pt(FONT_SIZE_PT)
    style.element.get_or_add_rPr().get_or_add_rFonts().set(qn("w:eastAsia"), FONT_NAME)


def apply_heading_format(paragraph, level: int, indent: int) -> None:
    level = min(level, 3)
    before, after = HEADING_SPACING_TWIPS[level]
    paragraph.paragraph_format.space_before = Twips(before)
    paragraph.paragraph_format.space_after = Twips(after)
    paragraph.paragraph_format.left_indent = Twips(indent)
    for run in paragraph.runs:
        set_run_font(run, bold=True, size=HEADING_SIZES_PT[level], color="000000")


def _shd(fill: str):
    shd = OxmlElement("w:shd")
    shd.set(qn("w:val"), "clear")
    shd.set(qn("w:color"), "auto")
    shd.set(qn("w:fill"), fill)
    return shd


def _border(tag: str, size: int, color: str, val: str = "single"):
    border = OxmlElement(tag)
    border.set(qn("w:val"), val)
    if val != "nil":
        border.set(qn("w:sz"), str(size))
        border.set(qn("w:space"), "1")
        border.set(qn("w:color"), color)
    return border


def shade_run(run, fill: str) -> None:
    rpr = run._element.get_or_add_rPr()
    for existing in rpr.findall(qn("w:shd")):
        rpr.remove(existing)
    rpr.insert_element_before(_shd(fill), *_RPR_AFTER_SHD)


def shade_paragraph(paragraph, fill: str) -> None:
    ppr = paragraph._p.get_or_add_pPr()
    for existing in ppr.findall(qn("w:shd")):
        ppr.remove(existing)
    ppr.insert_element_before(_shd(fill), *_PPR_AFTER_SHD)


def set_paragraph_border(paragraph, edge: str, size: int, color: str) -> None:
    """Add a single border on one edge (``left``, ``bottom``, ...) of a paragraph."""
    ppr = paragraph._p.get_or_add_pPr()
    pbdr = ppr.find(qn("w:pBdr"))
    if pbdr is None:
        pbdr = OxmlElement("w:pBdr")
        ppr.insert_element_before(pbdr, "w:shd", *_PPR_AFTER_SHD)
    pbdr.append(_border(f"w:{edge}", size, color))


def shade_cell(cell, fill: str) -> None:
    tcpr = cell._tc.get_or_add_tcPr()
    for existing in tcpr.findall(qn("w:shd")):
        tcpr.remove(existing)
    tcpr.insert_element_before(_shd(fill), *_TCPR_AFTER_SHD)


def set_cell_borders(cell, size: int = 4, color: str = "000000", **edges: str) -> None:
    """Set cell borders; ``edges`` maps an edge name to ``single`` or ``nil``."""
    tcpr = cell._tc.get_or_add_tcPr()
    for existing in tcpr.findall(qn("w:tcBorders")):
        tcpr.remove(existing)
    borders = OxmlElement("w:tcBorders")
    for edge in ("top", "left", "bottom", "right"):
        borders.append(_border(f"w:{edge}", size, color, val=edges.get(edge, "single")))
    tcpr.insert_element_before(borders, *_TCPR_AFTER_BORDERS)


def mark_header_row(row) -> None:
    """Repeat the row at the top of every page the table spans."""
    trpr = row._tr.get_or_add_trPr()
    header = OxmlElement("w:tblHeader")
    header.set(qn("w:val"), "true")
    trpr.append(header)


def set_table_indent(table, indent: int) -> None:
    tbl_pr = table._element.tblPr
    for child in list(tbl_pr):
        if child.tag == qn("w:tblInd"):
            tbl_pr.remove(child)
    ind = OxmlElement("w:tblInd")
    ind.set(qn("w:w"), str(int(indent)))
    ind.set(qn("w:type"), "dxa")
    tbl_pr.append(ind)


def add_field(paragraph, instruction: str, size: float = FONT_SIZE_PT) -> None:
    """Insert a complex field (``PAGE``, ``TOC ...``) into a paragraph."""
    run = paragraph.add_run()
    set_run_font(run, size=size)
    begin = OxmlElement("w:fldChar")
    begin.set(qn("w:fldCharType"), "begin")
    instr = OxmlElement("w:instrText")
    instr.set(qn("xml:space"), "preserve")
    instr.text = f" {instruction} "
    separate = OxmlElement("w:fldChar")
    separate.set(qn("w:fldCharType"), "separate")
    end = OxmlElement("w:fldChar")
    end.set(qn("w:fldCharType"), "end")
    run._r.append(begin)
    run._r.append(instr)
    run._r.append(separate)
    run._r.append(end)
