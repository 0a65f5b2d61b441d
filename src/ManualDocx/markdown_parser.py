from __future__ import annotations

import re
from typing import List

from .model import (
    Block,
    BlockQuote,
    CodeBlock,
    Document,
    Heading,
    HorizontalRule,
    ImageBlock,
    LineBreak,
    ListBlock,
    ListItem,
    PageBreak,
    Paragraph,
    TableBlock,
)
from .preprocess import MARKER_TAG

FENCE = "```"
MAX_LIST_LEVEL = 3

_PAGEBREAK_TAG_RE = re.compile(r"^<pagebreak\s*/?>$", re.IGNORECASE)
_PAGEBREAK_COMMENT_RE = re.compile(rf"^<!--\s*{MARKER_TAG}:pagebreak\s*-->$", re.IGNORECASE)
_BR_COMMENT_RE = re.compile(rf"^<!--\s*{MARKER_TAG}:br\s*-->$", re.IGNORECASE)
_HEADING_RE = re.compile(r"^(?P<marks>#{1,6})\s+(?P<text>.+)$")
_MD_IMAGE_RE = re.compile(r"^!\[(?P<alt>[^\]]*)\]\((?P<src>[^)]+)\)$")
_IMG_TAG_RE = re.compile(r"""<img\s+[^>]*src=["'](?P<src>[^"']+)["'][^>]*>""", re.IGNORECASE)
_ALT_ATTR_RE = re.compile(r"""alt=["']([^"']*)["']""", re.IGNORECASE)
_WIDTH_ATTR_RE = re.compile(r"""width=["']?(\d+)["']?""", re.IGNORECASE)
_HEIGHT_ATTR_RE = re.compile(r"""height=["']?(\d+)["']?""", re.IGNORECASE)
_TABLE_SEP_RE = re.compile(r"^\|?[\s:|]*-[\s\-:|]*\|?$")
_BULLET_START_RE = re.compile(r"^\s*[-*+]\s+\S")
_NUMBER_START_RE = re.compile(r"^\d+\.\s+\S")
_TOP_BULLET_RE = re.compile(r"^[-*+]\s+(?P<text>\S.*)$")
_TOP_NUMBER_RE = re.compile(r"^\d+\.\s+(?P<text>\S.*)$")
_NESTED_ITEM_RE = re.compile(r"^(?P<indent>\s+)(?:[-*+]|\d+\.)\s+(?P<text>\S.*)$")
_QUOTE_MARKER_RE = re.compile(r"^>\s?")
_HR_RE = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})$")


def parse_markdown(text: str) -> Document:
    """Parse preprocessed markup into an ordered sequence of blocks."""
    return Document(blocks=BlockParser(text).parse())


def split_table_row(line: str) -> list[str]:
    """Split a pipe row into trimmed cells.

    Empty cells produced by the leading/trailing delimiters are dropped;
    empty cells between two inner delimiters are kept.
    """
    cells = [cell.strip() for cell in line.split("|")]
    last = len(cells) - 1
    return [cell for idx, cell in enumerate(cells) if 0 < idx < last or cell != ""]


def nesting_level(indent: int) -> int:
    """Map leading whitespace width to a list nesting level (2-3 -> 1, 4-5 -> 2, ...)."""
    return min((indent + 1) // 2, MAX_LIST_LEVEL)


def is_table_separator(line: str) -> bool:
    return bool(_TABLE_SEP_RE.match(line))


class BlockParser:
    """Line-cursor state machine that emits block elements in document order."""

    def __init__(self, text: str) -> None:
        self.lines = text.split("\n")
        self.pos = 0
        self.blocks: List[Block] = []

    def parse(self) -> List[Block]:
        while self.pos < len(self.lines):
            line = self.lines[self.pos]

            if line.strip() == "":
                self.pos += 1
            elif line.startswith(FENCE):
                self._parse_code_block()
            elif _PAGEBREAK_TAG_RE.match(line) or _PAGEBREAK_COMMENT_RE.match(line):
                self.blocks.append(PageBreak())
                self.pos += 1
            elif _BR_COMMENT_RE.match(line):
                self.blocks.append(LineBreak())
                self.pos += 1
            elif _HEADING_RE.match(line):
                match = _HEADING_RE.match(line)
                self.blocks.append(Heading(level=len(match.group("marks")), text=match.group("text").strip()))
                self.pos += 1
            elif _MD_IMAGE_RE.match(line):
                match = _MD_IMAGE_RE.match(line)
                self.blocks.append(ImageBlock(src=match.group("src"), alt=match.group("alt")))
                self.pos += 1
            elif _IMG_TAG_RE.search(line):
                self.blocks.append(_image_from_tag(line))
                self.pos += 1
            elif self._at_table(self.pos):
                self._parse_table()
            elif _BULLET_START_RE.match(line):
                self._parse_list("bullet")
            elif _NUMBER_START_RE.match(line):
                self._parse_list("number")
            elif line.startswith(">"):
                self._parse_blockquote()
            elif _HR_RE.match(line):
                self.blocks.append(HorizontalRule())
                self.pos += 1
            else:
                self._parse_paragraph()

        return self.blocks

    def _at_table(self, index: int) -> bool:
        if "|" not in self.lines[index] or index + 1 >= len(self.lines):
            return False
        return is_table_separator(self.lines[index + 1])

    def _opens_block(self, index: int) -> bool:
        line = self.lines[index]
        return bool(
            line.startswith(FENCE)
            or _PAGEBREAK_TAG_RE.match(line)
            or _PAGEBREAK_COMMENT_RE.match(line)
            or _BR_COMMENT_RE.match(line)
            or _HEADING_RE.match(line)
            or _MD_IMAGE_RE.match(line)
            or _IMG_TAG_RE.search(line)
            or self._at_table(index)
            or _BULLET_START_RE.match(line)
            or _NUMBER_START_RE.match(line)
            or line.startswith(">")
            or _HR_RE.match(line)
        )

    def _parse_code_block(self) -> None:
        language = self.lines[self.pos][len(FENCE) :].strip()
        self.pos += 1
        code_lines: list[str] = []
        while self.pos < len(self.lines) and not self.lines[self.pos].startswith(FENCE):
            code_lines.append(self.lines[self.pos])
            self.pos += 1
        self.pos += 1  # closing fence
        self.blocks.append(CodeBlock(language=language, content="\n".join(code_lines)))

    def _parse_table(self) -> None:
        rows = [split_table_row(self.lines[self.pos])]
        self.pos += 2  # header + separator
        while self.pos < len(self.lines) and "|" in self.lines[self.pos]:
            rows.append(split_table_row(self.lines[self.pos]))
            self.pos += 1
        self.blocks.append(TableBlock(rows=rows))

    def _parse_list(self, kind: str) -> None:
        top_pattern = _TOP_BULLET_RE if kind == "bullet" else _TOP_NUMBER_RE
        items: list[ListItem] = []
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            top = top_pattern.match(line)
            nested = _NESTED_ITEM_RE.match(line)
            if top:
                items.append(ListItem(text=top.group("text"), level=0))
            elif nested:
                items.append(ListItem(text=nested.group("text"), level=nesting_level(len(nested.group("indent")))))
            elif line.strip() == "":
                self.pos += 1
                break
            else:
                break
            self.pos += 1
        self.blocks.append(ListBlock(kind=kind, items=items))

    def _parse_blockquote(self) -> None:
        lines: list[str] = []
        while self.pos < len(self.lines) and self.lines[self.pos].startswith(">"):
            lines.append(_QUOTE_MARKER_RE.sub("", self.lines[self.pos], count=1))
            self.pos += 1
        self.blocks.append(BlockQuote(text="\n".join(lines)))

    def _parse_paragraph(self) -> None:
        lines = [self.lines[self.pos].strip()]
        self.pos += 1
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            if line.strip() == "" or self._opens_block(self.pos):
                break
            lines.append(line.strip())
            self.pos += 1
        self.blocks.append(Paragraph(text=" ".join(lines)))


def _image_from_tag(line: str) -> ImageBlock:
    match = _IMG_TAG_RE.search(line)
    tag = match.group(0)
    alt = _ALT_ATTR_RE.search(tag)
    width = _WIDTH_ATTR_RE.search(tag)
    height = _HEIGHT_ATTR_RE.search(tag)
    return ImageBlock(
        src=match.group("src"),
        alt=alt.group(1) if alt else "",
        width=int(width.group(1)) if width else None,
        height=int(height.group(1)) if height else None,
    )
