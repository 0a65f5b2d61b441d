from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class Block:
    """Base class for block-level nodes."""


@dataclass
class ChangelogRecord:
    version: str
    date: str
    description: str


@dataclass
class Document:
    blocks: List[Block]
    changelog: List[ChangelogRecord] | None = None


@dataclass
class Heading(Block):
    level: int
    text: str


@dataclass
class Paragraph(Block):
    text: str


@dataclass
class ListItem:
    text: str
    level: int = 0


@dataclass
class ListBlock(Block):
    kind: str
    items: List[ListItem] = field(default_factory=list)

    @property
    def ordered(self) -> bool:
        return self.kind == "number"


@dataclass
class CodeBlock(Block):
    language: str
    content: str


@dataclass
class BlockQuote(Block):
    text: str


@dataclass
class ImageBlock(Block):
    src: str
    alt: str = ""
    width: int | None = None
    height: int | None = None


@dataclass
class HorizontalRule(Block):
    """Horizontal rule / thematic break."""


@dataclass
class TableBlock(Block):
    rows: List[List[str]]

    @property
    def header(self) -> List[str]:
        return self.rows[0] if self.rows else []


@dataclass
class PageBreak(Block):
    """Explicit page break marker."""


@dataclass
class LineBreak(Block):
    """Explicit empty line between blocks."""


@dataclass
class InlineElement:
    """Base class for inline nodes."""


@dataclass
class InlineText(InlineElement):
    text: str
    bold: bool = False
    italic: bool = False
    strike: bool = False
    code: bool = False
    error: bool = False


@dataclass
class InlineBreak(InlineElement):
    """Forced line break inside a paragraph."""


@dataclass
class InlineImage(InlineElement):
    src: str
    width: int
    height: int
    data: bytes = b""


@dataclass
class PlacedBlock:
    """A block annotated with the structural context active at its position."""

    block: Block
    indent: int = 0
    numbering_ref: str | None = None


@dataclass
class NumberingDefinition:
    reference: str
    indent: int


# Diagram source -> PNG bytes, or None when rendering failed.
DiagramCache = Dict[str, Optional[bytes]]
