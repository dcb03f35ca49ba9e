"""Tests for the Markdown fallback rendering."""

from __future__ import annotations

from quarry.models import FileContentRecord
from quarry.query.render import render_markdown


def _row(path: str, text: str) -> FileContentRecord:
    return FileContentRecord(file_path=path, text=text)


class TestRenderMarkdown:
    def test_groups_in_first_seen_order(self):
        rows = [_row("b.txt", "b1"), _row("a.txt", "a1"), _row("b.txt", "b2")]
        assert render_markdown(rows) == "## b.txt\n\n- b1\n- b2\n\n## a.txt\n\n- a1"

    def test_multiline_text_is_indented(self):
        rows = [_row("a.txt", "first line\nsecond line")]
        assert render_markdown(rows) == "## a.txt\n\n- first line\n  second line"

    def test_empty(self):
        assert render_markdown([]) == ""

    def test_every_text_present(self):
        rows = [_row(f"{i % 3}.txt", f"chunk {i}") for i in range(9)]
        md = render_markdown(rows)
        for i in range(9):
            assert f"- chunk {i}" in md
        assert md.count("## ") == 3
