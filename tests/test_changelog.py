import textwrap

from ManualDocx.changelog import extract_changelog
from ManualDocx.model import ChangelogRecord
from ManualDocx.preprocess import apply_range_markers, preprocess, strip_changelog

CHANGELOG_DOC = textwrap.dedent(
    """
    <!-- CHANGELOG -->
    | Version | Date | Description |
    |---------|------|-------------|
    | 1.0.0 | 2024-01-01 | Initial release |
    | 1.1.0 | 2024-03-01 | Added diagrams |
    <!-- /CHANGELOG -->

    # Body
    """
)


def test_two_data_rows_yield_two_records():
    assert extract_changelog(CHANGELOG_DOC) == [
        ChangelogRecord(version="1.0.0", date="2024-01-01", description="Initial release"),
        ChangelogRecord(version="1.1.0", date="2024-03-01", description="Added diagrams"),
    ]


def test_header_only_block_yields_none():
    text = "<!-- CHANGELOG -->\n| Version | Date | Description |\n|---|---|---|\n<!-- /CHANGELOG -->"
    assert extract_changelog(text) is None


def test_missing_block_yields_none():
    assert extract_changelog("# Just a heading") is None


def test_short_rows_are_dropped_and_japanese_header_skipped():
    text = (
        "<!--CHANGELOG-->\n"
        "| バージョン | 日付 | 内容 |\n"
        "| 0.9 | draft |\n"
        "| 1.0 | 2024-05-05 | First |\n"
        "<!--/CHANGELOG-->"
    )
    assert extract_changelog(text) == [ChangelogRecord("1.0", "2024-05-05", "First")]


def test_strip_changelog_removes_region_and_trailing_space():
    assert strip_changelog(CHANGELOG_DOC) == "\n# Body\n"


def test_range_markers_trim_header_and_footer():
    text = "intro\n<!-- md2mdocx:start -->\n# Kept\n<!-- MD2MDOCX:END -->\nfooter"
    assert apply_range_markers(text) == "\n# Kept\n"


def test_end_marker_without_start():
    assert apply_range_markers("body\n<!-- md2mdocx:end -->tail") == "body\n"


def test_preprocess_applies_both():
    text = CHANGELOG_DOC + "<!-- md2mdocx:end -->\nhidden"
    assert preprocess(text) == "\n# Body\n"
