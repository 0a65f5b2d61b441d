from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from .model import InlineBreak, InlineElement, InlineImage, InlineText

logger = logging.getLogger(__name__)

DEFAULT_INLINE_IMAGE_PX = 24

_IMG_TAG_RE = re.compile(r"""<img\s+[^>]*src=["'](?P<src>[^"']+)["'][^>]*>""", re.IGNORECASE)
_BR_TAG_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_WIDTH_ATTR_RE = re.compile(r"""width=["']?(\d+)["']?""", re.IGNORECASE)
_HEIGHT_ATTR_RE = re.compile(r"""height=["']?(\d+)["']?""", re.IGNORECASE)


@dataclass(frozen=True)
class Matcher:
    """One entry of the inline lexer table.

    ``build`` turns the match into the inline elements it stands for.
    """

    name: str
    pattern: re.Pattern
    build: Callable[[re.Match, Optional[Path]], List[InlineElement]]


def _styled(**style) -> Callable[[re.Match, Optional[Path]], List[InlineElement]]:
    def build(match: re.Match, asset_root: Optional[Path]) -> List[InlineElement]:
        return [InlineText(match.group(1), **style)]

    return build


def _line_break(match: re.Match, asset_root: Optional[Path]) -> List[InlineElement]:
    return [InlineBreak()]


def _image(match: re.Match, asset_root: Optional[Path]) -> List[InlineElement]:
    tag = match.group(0)
    width = _WIDTH_ATTR_RE.search(tag)
    height = _HEIGHT_ATTR_RE.search(tag)
    return [
        load_inline_image(
            match.group("src"),
            asset_root,
            width=int(width.group(1)) if width else None,
            height=int(height.group(1)) if height else None,
        )
    ]


# Order is the tie-break order for matches starting at the same offset.
MATCHERS: Tuple[Matcher, ...] = (
    Matcher("break", _BR_TAG_RE, _line_break),
    Matcher("image", _IMG_TAG_RE, _image),
    Matcher("bold_italic", re.compile(r"\*\*\*(.+?)\*\*\*"), _styled(bold=True, italic=True)),
    Matcher("bold", re.compile(r"\*\*(.+?)\*\*"), _styled(bold=True)),
    Matcher("italic", re.compile(r"\*(.+?)\*"), _styled(italic=True)),
    Matcher("bold_underscore", re.compile(r"__(.+?)__"), _styled(bold=True)),
    Matcher("italic_underscore", re.compile(r"_(.+?)_"), _styled(italic=True)),
    Matcher("strike", re.compile(r"~~(.+?)~~"), _styled(strike=True)),
    Matcher("code", re.compile(r"`(.+?)`"), _styled(code=True)),
)


def earliest_match(text: str, matchers: Sequence[Matcher] = MATCHERS) -> tuple[Matcher, re.Match] | None:
    """Return the leftmost match in ``text``; earlier table entries win ties."""
    best: tuple[Matcher, re.Match] | None = None
    for matcher in matchers:
        match = matcher.pattern.search(text)
        if match and (best is None or match.start() < best[1].start()):
            best = (matcher, match)
    return best


def resolve_inline(text: str, asset_root: Path | None = None) -> List[InlineElement]:
    """Turn one block's raw text into styled runs and embedded objects."""
    runs: List[InlineElement] = []
    remaining = text
    while remaining:
        found = earliest_match(remaining)
        if found is None:
            runs.append(InlineText(remaining))
            break
        matcher, match = found
        if match.start() > 0:
            runs.append(InlineText(remaining[: match.start()]))
        runs.extend(matcher.build(match, asset_root))
        remaining = remaining[match.end() :]
    return runs or [InlineText(text)]


def load_inline_image(
    src: str,
    asset_root: Path | None,
    width: int | None = None,
    height: int | None = None,
) -> InlineElement:
    """Read an inline image file, or return a visible placeholder run."""
    if asset_root is None:
        return InlineText("[Image]")
    image_path = Path(src)
    if not image_path.is_absolute():
        image_path = asset_root / src
    if not image_path.exists():
        logger.warning("Inline image not found: %s", image_path)
        return InlineText(f"[Image: {src}]", error=True)
    try:
        data = image_path.read_bytes()
    except OSError as exc:
        logger.warning("Failed to read inline image %s: %s", image_path, exc)
        return InlineText("[Image error]", error=True)
    width_px = width or DEFAULT_INLINE_IMAGE_PX
    height_px = height or width or DEFAULT_INLINE_IMAGE_PX
    return InlineImage(src=src, width=width_px, height=height_px, data=data)
