import textwrap
from dataclasses import fields
from pathlib import Path

import pytest
import requests
from docx import Document as DocxReader

from ManualDocx import cli, converter
from ManualDocx.config import Options
from ManualDocx.diagrams import DiagramRenderer
from ManualDocx.model import Heading, Paragraph

MANUAL = textwrap.dedent(
    """
    Draft notes that should not be converted.
    <!-- md2mdocx:start -->
    <!-- CHANGELOG -->
    | Version | Date | Description |
    |---|---|---|
    | 1.0 | 2024-01-01 | First |
    <!-- /CHANGELOG -->
    # Guide

    Intro paragraph.

    ```mermaid
    graph TD
    A-->B
    ```

    ## Details

    ```mermaid
    graph TD
    A-->B
    ```
    <!-- md2mdocx:end -->
    Trailing notes.
    """
)


class OfflineSession:
    def __init__(self):
        self.calls = 0

    def post(self, *args, **kwargs):
        self.calls += 1
        raise requests.exceptions.ConnectionError("offline")


def test_convert_text_pipeline():
    session = OfflineSession()
    result = converter.convert_text(MANUAL, Options(), DiagramRenderer(session=session))
    blocks = result.document.blocks
    assert blocks[0] == Heading(level=1, text="Guide")
    assert blocks[1] == Paragraph("Intro paragraph.")
    assert all("notes" not in getattr(block, "text", "") for block in blocks)
    assert [r.version for r in result.document.changelog] == ["1.0"]
    assert result.diagrams == {"graph TD\nA-->B": None}
    assert session.calls == 1
    assert [f.name for f in fields(result.document)] == ["blocks", "changelog"]


def test_convert_text_uses_theme_for_diagrams(monkeypatch):
    captured = {}

    class RecordingRenderer(DiagramRenderer):
        def __init__(self, **kwargs):
            captured.update(kwargs)
            super().__init__(session=OfflineSession(), **kwargs)

    monkeypatch.setattr(converter, "DiagramRenderer", RecordingRenderer)
    converter.convert_text("# Empty", Options(theme="green", kroki_url="http://kroki.local/mermaid/png"))
    assert captured == {"mermaid_theme": "forest", "url": "http://kroki.local/mermaid/png"}


def test_convert_file_writes_docx(tmp_path: Path):
    source = tmp_path / "guide.md"
    source.write_text(MANUAL, encoding="utf-8")
    out = converter.convert_file(
        source, tmp_path / "guide.docx", Options(), DiagramRenderer(session=OfflineSession())
    )
    reader = DocxReader(out)
    texts = [p.text for p in reader.paragraphs]
    assert "Guide" in texts
    assert texts.count("[Mermaid diagram: Rendering failed - API connection error or offline]") == 2


def test_cli_save_config_only(tmp_path: Path):
    target = tmp_path / "settings.yml"
    cli.main(["--save-config", str(target), "--title", "Saved Title", "--hr-pagebreak", "false"])
    content = target.read_text(encoding="utf-8")
    assert "Saved Title" in content
    assert "hr-pagebreak: false" in content


def test_cli_missing_input_raises(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        cli.main([str(tmp_path / "absent.md")])


def test_cli_requires_input_or_save_config():
    with pytest.raises(SystemExit):
        cli.main([])


def test_cli_converts_with_sidecar_config(tmp_path: Path, monkeypatch):
    source = tmp_path / "guide.md"
    source.write_text("# Guide\n\nBody text.\n", encoding="utf-8")
    (tmp_path / "guide.yaml").write_text("title: Sidecar Product\n", encoding="utf-8")
    monkeypatch.setattr(converter, "DiagramRenderer", lambda **kwargs: DiagramRenderer(session=OfflineSession()))
    cli.main([str(source), "--company", "CLI Corp"])
    reader = DocxReader(tmp_path / "guide.docx")
    texts = [p.text for p in reader.paragraphs]
    assert "Sidecar Product Manual" in texts
    assert "CLI Corp" in texts


def test_convert_text_closes_its_own_session(monkeypatch):
    sessions = []

    class ClosingSession(OfflineSession):
        closed = False

        def close(self):
            self.closed = True

    def make_session():
        sessions.append(ClosingSession())
        return sessions[-1]

    monkeypatch.setattr(requests, "Session", make_session)
    result = converter.convert_text(MANUAL, Options())
    assert result.diagrams == {"graph TD\nA-->B": None}
    assert len(sessions) == 1
    assert sessions[0].closed
