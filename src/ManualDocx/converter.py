from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from . import markdown_parser, renderer_docx
from .changelog import extract_changelog
from .config import Options
from .diagrams import DiagramRenderer
from .model import DiagramCache, Document
from .preprocess import preprocess

logger = logging.getLogger(__name__)


@dataclass
class ConversionResult:
    document: Document
    diagrams: DiagramCache = field(default_factory=dict)


def convert_text(
    raw_text: str,
    options: Options | None = None,
    diagram_renderer: DiagramRenderer | None = None,
) -> ConversionResult:
    """Run preprocessing, changelog extraction, block parsing and diagram rendering.

    A fresh ``DiagramRenderer`` (and so a fresh cache) is created per call
    unless one is passed in; a renderer created here closes its HTTP session
    before returning.
    """
    options = options or Options()
    changelog = extract_changelog(raw_text)
    document = markdown_parser.parse_markdown(preprocess(raw_text))
    document.changelog = changelog
    logger.debug("Parsed %d blocks, %d changelog rows", len(document.blocks), len(changelog or []))

    if diagram_renderer is not None:
        diagrams = diagram_renderer.render_all(document.blocks)
    else:
        with DiagramRenderer(mermaid_theme=options.colors.mermaid, url=options.kroki_url) as renderer:
            diagrams = renderer.render_all(document.blocks)
    return ConversionResult(document=document, diagrams=diagrams)


def convert_file(
    input_path: Path,
    output_path: Path,
    options: Options | None = None,
    diagram_renderer: DiagramRenderer | None = None,
) -> Path:
    options = options or Options()
    raw_text = input_path.read_text(encoding="utf-8")
    result = convert_text(raw_text, options, diagram_renderer)
    return renderer_docx.render_document(
        result.document,
        output_path,
        options=options,
        diagrams=result.diagrams,
        asset_root=input_path.resolve().parent,
    )
