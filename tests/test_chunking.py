"""Tests for the sentence-boundary splitter."""

from __future__ import annotations

import pytest

from quarry.embed.chunking import normalize_whitespace, split_text


class TestNormalize:
    def test_single_newlines_collapse(self):
        assert normalize_whitespace("a\nb\n\nc") == "a b\n\nc"

    def test_paragraph_runs_shrink(self):
        assert normalize_whitespace("a\n\n\n\nb") == "a\n\nb"

    def test_crlf(self):
        assert normalize_whitespace("a\r\nb") == "a b"


class TestSplit:
    def test_short_text_single_chunk(self):
        assert split_text("Just one sentence.", chunk_size=100, overlap=10) == ["Just one sentence."]

    def test_blank_text(self):
        assert split_text("   \n ") == []

    def test_long_text_respects_size_and_covers_everything(self):
        sentences = [f"Sentence number {i} is here." for i in range(40)]
        text = " ".join(sentences)
        chunks = split_text(text, chunk_size=100, overlap=20)

        assert len(chunks) > 1
        assert all(0 < len(c) <= 100 for c in chunks)
        for i in range(40):
            assert any(f"number {i} is" in c for c in chunks)

    def test_chunks_end_at_sentence_boundaries(self):
        text = " ".join(f"Sentence number {i} is here." for i in range(40))
        chunks = split_text(text, chunk_size=100, overlap=20)
        assert all(c.endswith(".") for c in chunks)

    def test_consecutive_chunks_overlap(self):
        text = " ".join(f"Sentence number {i} is here." for i in range(40))
        chunks = split_text(text, chunk_size=100, overlap=20)
        for left, right in zip(chunks, chunks[1:]):
            assert left[-10:] in right

    def test_no_break_characters(self):
        text = "x" * 250
        chunks = split_text(text, chunk_size=100, overlap=0)
        assert "".join(chunks) == text

    @pytest.mark.parametrize(("size", "overlap"), [(0, 0), (100, 100), (100, -1)])
    def test_invalid_arguments(self, size: int, overlap: int):
        with pytest.raises(ValueError):
            split_text("text", chunk_size=size, overlap=overlap)
