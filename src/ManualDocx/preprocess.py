from __future__ import annotations

import re

MARKER_TAG = "md2mdocx"

CHANGELOG_RE = re.compile(r"<!--\s*CHANGELOG\s*-->(?P<body>[\s\S]*?)<!--\s*/CHANGELOG\s*-->")
_CHANGELOG_STRIP_RE = re.compile(r"<!--\s*CHANGELOG\s*-->[\s\S]*?<!--\s*/CHANGELOG\s*-->\s*")
_START_RE = re.compile(rf"<!--\s*{MARKER_TAG}:start\s*-->", re.IGNORECASE)
_END_RE = re.compile(rf"<!--\s*{MARKER_TAG}:end\s*-->", re.IGNORECASE)


def strip_changelog(text: str) -> str:
    """Remove the first changelog region and the whitespace that follows it."""
    return _CHANGELOG_STRIP_RE.sub("", text, count=1)


def apply_range_markers(text: str) -> str:
    """Keep only the text between the start and end markers, when present."""
    start = _START_RE.search(text)
    if start:
        text = text[start.end() :]
    end = _END_RE.search(text)
    if end:
        text = text[: end.start()]
    return text


def preprocess(text: str) -> str:
    return apply_range_markers(strip_changelog(text))
