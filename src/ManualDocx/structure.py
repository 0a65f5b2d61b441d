from __future__ import annotations

from typing import Iterable, List

from .model import Block, Heading, ListBlock, NumberingDefinition, PlacedBlock

# Left indent (twips) applied below any heading deeper than level 1.
SECTION_INDENT = 360


def indent_after(heading: Heading) -> int:
    return 0 if heading.level == 1 else SECTION_INDENT


def numbering_reference(counter: int, indent: int) -> str:
    return f"number-{counter}-indent{indent}"


def track_structure(blocks: Iterable[Block]) -> List[PlacedBlock]:
    """Annotate every block with the indent and numbering scheme active at its position.

    The indent is set by the most recent heading only; numbered lists each get
    a fresh reference that also encodes that indent, so lists at different
    depths never share a numbering definition.
    """
    placed: List[PlacedBlock] = []
    indent = 0
    list_counter = 0
    for block in blocks:
        if isinstance(block, Heading):
            indent = indent_after(block)
        numbering_ref = None
        if isinstance(block, ListBlock) and block.ordered:
            list_counter += 1
            numbering_ref = numbering_reference(list_counter, indent)
        placed.append(PlacedBlock(block=block, indent=indent, numbering_ref=numbering_ref))
    return placed


def numbering_definitions(placed: Iterable[PlacedBlock]) -> List[NumberingDefinition]:
    return [
        NumberingDefinition(reference=item.numbering_ref, indent=item.indent)
        for item in placed
        if item.numbering_ref is not None
    ]
