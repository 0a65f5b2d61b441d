from __future__ import annotations

import re
from typing import List

from .markdown_parser import split_table_row
from .model import ChangelogRecord
from .preprocess import CHANGELOG_RE

HEADER_LABELS = ("Version", "バージョン")
_SEPARATOR_ROW_RE = re.compile(r"^\|[\s\-:|]+\|$")


def extract_changelog(text: str) -> List[ChangelogRecord] | None:
    """Pull version-history rows out of the delimited changelog table.

    Returns ``None`` when there is no changelog region or it holds no data
    rows; the caller then falls back to a synthesized single-row history.
    """
    match = CHANGELOG_RE.search(text)
    if not match:
        return None

    lines = [line.strip() for line in match.group("body").strip().split("\n") if line.strip()]
    records: list[ChangelogRecord] = []
    for idx, line in enumerate(lines):
        if _SEPARATOR_ROW_RE.match(line):
            continue
        if idx == 0 and any(label in line for label in HEADER_LABELS):
            continue
        if "|" not in line:
            continue
        cells = split_table_row(line)
        if len(cells) < 3:
            continue
        records.append(ChangelogRecord(version=cells[0], date=cells[1], description=cells[2]))

    return records or None
