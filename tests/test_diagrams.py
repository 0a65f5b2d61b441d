import struct
import zlib

import pytest
import requests

from ManualDocx.diagrams import (
    MAX_DIAGRAM_HEIGHT_PX,
    DiagramRenderer,
    diagram_size,
    fit_dimensions,
    max_width_px,
    image_dimensions,
    with_theme,
)
from ManualDocx.markdown_parser import parse_markdown


def make_png(width: int, height: int) -> bytes:
    def chunk(kind: bytes, data: bytes) -> bytes:
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data) & 0xFFFFFFFF)

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    raw = b"".join(b"\x00" + b"\x00\x00\xff" * width for _ in range(height))
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IDAT", zlib.compress(raw)) + chunk(b"IEND", b"")


class FakeResponse:
    def __init__(self, status_code=200, content=b""):
        self.status_code = status_code
        self.content = content


class FakeSession:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def test_duplicate_sources_render_once():
    text = "```mermaid\ngraph TD\nA-->B\n```\n\ntext\n\n```mermaid\ngraph TD\nA-->B\n```\n\n```mermaid\ngraph LR\nC\n```\n"
    session = FakeSession(FakeResponse(content=make_png(10, 10)))
    renderer = DiagramRenderer(session=session)
    cache = renderer.render_all(parse_markdown(text).blocks)
    assert len(session.calls) == 2
    assert set(cache) == {"graph TD\nA-->B", "graph LR\nC"}
    assert session.calls[0]["headers"] == {"Content-Type": "text/plain"}
    assert session.calls[0]["timeout"] == 30


def test_non_diagram_code_is_ignored():
    session = FakeSession(FakeResponse(content=b"png"))
    cache = DiagramRenderer(session=session).render_all(parse_markdown("```python\nx = 1\n```").blocks)
    assert cache == {}
    assert session.calls == []


def test_theme_directive_injected_once():
    assert with_theme("graph TD", "forest") == "%%{init: {'theme': 'forest'}}%%\ngraph TD"
    own = "%%{init: {'theme': 'dark'}}%%\ngraph TD"
    assert with_theme(own, "forest") == own


def test_request_body_carries_theme_but_cache_key_is_original():
    session = FakeSession(FakeResponse(content=b"png"))
    renderer = DiagramRenderer(mermaid_theme="neutral", session=session)
    assert renderer.render("graph TD") == b"png"
    assert session.calls[0]["data"].decode("utf-8").startswith("%%{init: {'theme': 'neutral'}}%%")
    assert "graph TD" in renderer.cache


@pytest.mark.parametrize(
    "outcome",
    [
        FakeResponse(status_code=500),
        requests.exceptions.ConnectionError("offline"),
        requests.exceptions.Timeout("slow"),
    ],
)
def test_failures_are_cached_as_none(outcome):
    session = FakeSession(outcome)
    renderer = DiagramRenderer(session=session)
    assert renderer.render("graph TD") is None
    assert renderer.render("graph TD") is None
    assert renderer.cache == {"graph TD": None}
    assert len(session.calls) == 1


def test_image_dimensions():
    assert image_dimensions(make_png(640, 480)) == (640, 480)
    assert image_dimensions(b"GIF89a" + b"\x00" * 30) is None
    assert image_dimensions(b"\x89PNG") is None
    assert image_dimensions(make_png(640, 480)[:30]) is None


def test_fit_dimensions_never_upscales():
    assert fit_dimensions(100, 50) == (100, 50)


def test_fit_dimensions_scales_to_tighter_bound():
    max_width = max_width_px(0)
    width, height = fit_dimensions(1200, 400)
    scale = min(max_width / 1200, MAX_DIAGRAM_HEIGHT_PX / 400)
    assert (width, height) == (round(1200 * scale), round(400 * scale))
    assert width <= 1200 and height <= 400

    width, height = fit_dimensions(300, 1200)
    assert (width, height) == (150, 600)


def test_indent_reduces_usable_width():
    assert max_width_px(360) < max_width_px(0)
    wide = fit_dimensions(2000, 100, indent=360)
    assert wide[0] == round(max_width_px(360))


def test_diagram_size_defaults_without_png_header():
    assert diagram_size(b"not-a-png") == (600, 360)


def test_zero_dimensions_fall_back_to_default_size():
    assert fit_dimensions(0, 900) == (600, 360)
    assert fit_dimensions(640, -1) == (600, 360)
    assert diagram_size(make_png(0, 10)) == (600, 360)


def test_default_size_still_fits_indented_width():
    width, height = diagram_size(b"not-a-png", indent=720)
    assert width == round(max_width_px(720))
    assert width < 600 and height < 360


def test_diagram_size_reads_real_png():
    assert diagram_size(make_png(320, 200)) == (320, 200)


class ClosableSession(FakeSession):
    def __init__(self, outcome=None):
        super().__init__(outcome or FakeResponse(content=b"png"))
        self.closed = False

    def close(self):
        self.closed = True


def test_owned_session_is_closed(monkeypatch):
    created = []

    def make_session():
        session = ClosableSession()
        created.append(session)
        return session

    monkeypatch.setattr(requests, "Session", make_session)
    with DiagramRenderer() as renderer:
        assert renderer.render("graph TD") == b"png"
    assert len(created) == 1
    assert created[0].closed


def test_injected_session_is_left_open():
    session = ClosableSession()
    with DiagramRenderer(session=session) as renderer:
        renderer.render("graph TD")
    renderer.close()
    assert not session.closed
