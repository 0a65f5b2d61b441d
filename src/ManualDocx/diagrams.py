from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

import requests
from docx.image.exceptions import InvalidImageStreamError, UnexpectedEndOfFileError, UnrecognizedImageError
from docx.image.image import Image

from .config import DEFAULT_KROKI_URL
from .manual_format import CONTENT_WIDTH_TWIPS
from .model import Block, CodeBlock, DiagramCache

logger = logging.getLogger(__name__)

DIAGRAM_LANGUAGE = "mermaid"
INIT_DIRECTIVE = "%%{init:"
REQUEST_TIMEOUT_S = 30

DEFAULT_DIAGRAM_WIDTH_PX = 600
DEFAULT_DIAGRAM_HEIGHT_PX = round(DEFAULT_DIAGRAM_WIDTH_PX * 0.6)
MAX_DIAGRAM_HEIGHT_PX = 600
TWIPS_PER_INCH = 1440
PIXELS_PER_INCH = 96


def is_diagram(block: Block) -> bool:
    return isinstance(block, CodeBlock) and block.language == DIAGRAM_LANGUAGE


def diagram_sources(blocks: Iterable[Block]) -> List[str]:
    """Distinct diagram sources in discovery order."""
    seen: dict[str, None] = {}
    for block in blocks:
        if is_diagram(block):
            seen.setdefault(block.content, None)
    return list(seen)


def with_theme(source: str, mermaid_theme: str) -> str:
    """Prefix a theme directive unless the diagram already configures itself."""
    if INIT_DIRECTIVE in source:
        return source
    return f"%%{{init: {{'theme': '{mermaid_theme}'}}}}%%\n{source}"


def image_dimensions(data: bytes) -> Optional[Tuple[int, int]]:
    """Pixel size of a raster image, or None when it cannot be read."""
    try:
        image = Image.from_blob(data)
    except (UnrecognizedImageError, UnexpectedEndOfFileError, InvalidImageStreamError) as exc:
        logger.debug("Cannot read image size: %s", exc)
        return None
    if image.px_width <= 0 or image.px_height <= 0:
        return None
    return image.px_width, image.px_height


def max_width_px(indent: int) -> float:
    return (CONTENT_WIDTH_TWIPS - indent) / TWIPS_PER_INCH * PIXELS_PER_INCH


def fit_dimensions(
    width: int,
    height: int,
    indent: int = 0,
    max_height: int = MAX_DIAGRAM_HEIGHT_PX,
) -> Tuple[int, int]:
    """Scale down (never up) so the image fits the usable width and max height.

    Non-positive sizes are replaced by the default diagram size.
    """
    if width <= 0 or height <= 0:
        width, height = DEFAULT_DIAGRAM_WIDTH_PX, DEFAULT_DIAGRAM_HEIGHT_PX
    max_width = max_width_px(indent)
    if width <= max_width and height <= max_height:
        return width, height
    scale = min(max_width / width, max_height / height)
    return round(width * scale), round(height * scale)


def diagram_size(data: bytes, indent: int = 0) -> Tuple[int, int]:
    width, height = image_dimensions(data) or (0, 0)
    return fit_dimensions(width, height, indent)


class DiagramRenderer:
    """Render diagram sources to PNG through a Kroki-compatible HTTP service.

    Results are cached per original source text for the lifetime of the
    renderer; failures are cached as ``None`` and never raised. A session
    created here is closed by ``close()`` or on leaving a ``with`` block; an
    injected session belongs to the caller.
    """

    def __init__(
        self,
        mermaid_theme: str = "default",
        url: str = DEFAULT_KROKI_URL,
        timeout: float = REQUEST_TIMEOUT_S,
        session: requests.Session | None = None,
    ) -> None:
        self.mermaid_theme = mermaid_theme
        self.url = url
        self.timeout = timeout
        self._owns_session = session is None
        self.session = requests.Session() if session is None else session
        self.cache: DiagramCache = {}

    def __enter__(self) -> "DiagramRenderer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def render(self, source: str) -> Optional[bytes]:
        if source not in self.cache:
            logger.info("Rendering Mermaid diagram...")
            self.cache[source] = self._request(with_theme(source, self.mermaid_theme))
        return self.cache[source]

    def render_all(self, blocks: Iterable[Block]) -> DiagramCache:
        for source in diagram_sources(blocks):
            self.render(source)
        return self.cache

    def _request(self, payload: str) -> Optional[bytes]:
        try:
            response = self.session.post(
                self.url,
                data=payload.encode("utf-8"),
                headers={"Content-Type": "text/plain"},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            logger.warning("Kroki API timeout")
            return None
        except requests.exceptions.RequestException as exc:
            logger.warning("Kroki API connection error: %s", exc)
            return None
        if response.status_code != 200:
            logger.warning("Kroki API error (HTTP %s)", response.status_code)
            return None
        return response.content
