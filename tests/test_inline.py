from pathlib import Path

from ManualDocx.inline import earliest_match, resolve_inline
from ManualDocx.model import InlineBreak, InlineImage, InlineText


def test_bold_and_italic_runs():
    runs = resolve_inline("Text with **bold** and *italic*")
    assert runs == [
        InlineText("Text with "),
        InlineText("bold", bold=True),
        InlineText(" and "),
        InlineText("italic", italic=True),
    ]


def test_triple_emphasis_wins_tie_at_same_offset():
    runs = resolve_inline("***both*** end")
    assert runs == [InlineText("both", bold=True, italic=True), InlineText(" end")]


def test_earliest_start_beats_table_order():
    matcher, match = earliest_match("a `code` then **bold**")
    assert matcher.name == "code"
    assert match.start() == 2


def test_underscore_strike_and_code_styles():
    runs = resolve_inline("__b__ _i_ ~~s~~ `c`")
    assert runs == [
        InlineText("b", bold=True),
        InlineText(" "),
        InlineText("i", italic=True),
        InlineText(" "),
        InlineText("s", strike=True),
        InlineText(" "),
        InlineText("c", code=True),
    ]


def test_non_greedy_matching():
    runs = resolve_inline("*a* b *c*")
    assert runs == [InlineText("a", italic=True), InlineText(" b "), InlineText("c", italic=True)]


def test_break_tag():
    runs = resolve_inline("one<br>two<BR/>")
    assert runs == [InlineText("one"), InlineBreak(), InlineText("two"), InlineBreak()]


def test_unmatched_markers_stay_plain():
    assert resolve_inline("2 * 3 = 6") == [InlineText("2 * 3 = 6")]


def test_empty_text_yields_single_empty_run():
    assert resolve_inline("") == [InlineText("")]


def test_inline_image_without_asset_root():
    runs = resolve_inline('see <img src="icon.png"> here')
    assert runs == [InlineText("see "), InlineText("[Image]"), InlineText(" here")]


def test_inline_image_missing_file_is_marked(tmp_path: Path):
    runs = resolve_inline('<img src="missing.png">', asset_root=tmp_path)
    assert runs == [InlineText("[Image: missing.png]", error=True)]


def test_inline_image_loaded_with_default_size(tmp_path: Path):
    (tmp_path / "icon.png").write_bytes(b"fake-bytes")
    runs = resolve_inline('<img src="icon.png" width="32">', asset_root=tmp_path)
    assert runs == [InlineImage(src="icon.png", width=32, height=32, data=b"fake-bytes")]

    runs = resolve_inline("<img src='icon.png'>", asset_root=tmp_path)
    assert runs[0].width == 24 and runs[0].height == 24