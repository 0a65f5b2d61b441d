from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

MARKDOWN_SUFFIX = ".md"
DOCX_SUFFIX = ".docx"


def configure_logging(verbose: bool = False) -> None:
    """Console logging for the CLI; HTTP connection chatter stays at WARNING."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(message)s",
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def markdown_sibling(input_path: Path, suffix: str) -> Path:
    """``guide.md`` -> ``guide<suffix>``; other names get ``suffix`` appended."""
    name = input_path.name
    if name.endswith(MARKDOWN_SUFFIX) and len(name) > len(MARKDOWN_SUFFIX):
        name = name[: -len(MARKDOWN_SUFFIX)]
    return input_path.with_name(name + suffix)


def resolve_output_path(input_path: Path, output: Optional[str]) -> Path:
    if output:
        out_path = Path(output)
        if out_path.is_dir():
            out_path = out_path / markdown_sibling(input_path, DOCX_SUFFIX).name
        return out_path
    return markdown_sibling(input_path, DOCX_SUFFIX)
