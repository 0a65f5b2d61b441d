from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from datetime import date
from pathlib import Path
from typing import Any, Mapping

import yaml

from .utils import markdown_sibling

logger = logging.getLogger(__name__)

DEFAULT_THEME = "blue"
DEFAULT_KROKI_URL = "https://kroki.io/mermaid/png"


@dataclass(frozen=True)
class Theme:
    header_border: str
    table_header: str
    mermaid: str


THEMES: dict[str, Theme] = {
    "blue": Theme(header_border="2F4F76", table_header="538DD4", mermaid="default"),
    "orange": Theme(header_border="B45F06", table_header="F6B26B", mermaid="neutral"),
    "green": Theme(header_border="38761D", table_header="93C47D", mermaid="forest"),
}


def get_theme(name: str | None) -> Theme:
    return THEMES.get(name or DEFAULT_THEME, THEMES[DEFAULT_THEME])


@dataclass
class Options:
    """Presentation options for one conversion."""

    title: str = "Product Name"
    subtitle: str = "Manual"
    doctype: str = "Operation Manual"
    version: str = "1.0.0"
    date: str = ""
    dept: str = "Technical Development"
    docnum: str = "DOC-001"
    logo: str | None = None
    company: str = "Sample Corporation"
    theme: str = DEFAULT_THEME
    hr_pagebreak: bool = True
    kroki_url: str = DEFAULT_KROKI_URL

    def __post_init__(self) -> None:
        if not self.date:
            self.date = today_label()

    @property
    def colors(self) -> Theme:
        return get_theme(self.theme)


def today_label(today: date | None = None) -> str:
    today = today or date.today()
    return f"{today.strftime('%B')} {today.day}, {today.year}"


def option_keys() -> list[str]:
    return [f.name for f in fields(Options)]


def config_key(name: str) -> str:
    """Map a config/CLI spelling (``hr-pagebreak``) to the field name."""
    return name.replace("-", "_")


def load_config_file(path: Path | None) -> dict[str, Any]:
    """Read a YAML config file; a missing or unreadable file yields ``{}``."""
    if path is None or not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to load config file %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s must contain a mapping; ignoring it.", path)
        return {}
    return {config_key(str(key)): value for key, value in data.items()}


def default_config_path(input_path: Path) -> Path | None:
    """``manual.md`` -> ``manual.yaml`` next to it, when that file exists."""
    candidate = markdown_sibling(input_path, ".yaml")
    return candidate if candidate.exists() else None


def _coerce(value: Any) -> Any:
    if isinstance(value, str):
        if value.lower() == "true":
            return True
        if value.lower() == "false":
            return False
    return value


def resolve_options(
    cli_values: Mapping[str, Any] | None = None,
    file_config: Mapping[str, Any] | None = None,
) -> Options:
    """Merge option sources: command line > config file > defaults."""
    known = set(option_keys())
    merged: dict[str, Any] = {}
    for source in (file_config or {}, cli_values or {}):
        for key, value in source.items():
            key = config_key(key)
            if key in known and value is not None:
                merged[key] = _coerce(value)

    options = Options(**merged)
    if options.theme not in THEMES:
        logger.warning('Unknown theme "%s". Using default "%s".', options.theme, DEFAULT_THEME)
        options.theme = DEFAULT_THEME
    if isinstance(options.hr_pagebreak, str):
        options.hr_pagebreak = options.hr_pagebreak.lower() in {"1", "yes", "y", "on"}
    for key in ("title", "subtitle", "doctype", "version", "date", "dept", "docnum", "company"):
        setattr(options, key, str(getattr(options, key)))
    return options


def save_config_file(path: Path, options: Options) -> Path:
    """Write every option that has a value to a YAML file and return its path."""
    if path.suffix not in {".yaml", ".yml"}:
        path = path.with_name(path.name + ".yaml")
    data = {key.replace("_", "-"): value for key, value in asdict(options).items() if value is not None}
    path.write_text(yaml.safe_dump(data, allow_unicode=True, sort_keys=False), encoding="utf-8")
    logger.info("Config saved: %s", path)
    return path
