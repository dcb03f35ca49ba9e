"""Sentence-boundary text splitter."""

from __future__ import annotations

import re

_BREAK_CHARS = ".!?\n"
_SINGLE_NEWLINE = re.compile(r"(?<!\n)\n(?!\n)")
_PARAGRAPH_BREAK = re.compile(r"\n{3,}")


def normalize_whitespace(text: str) -> str:
    """Collapse single newlines to spaces; keep paragraph breaks."""
    text = text.replace("\r\n", "\n")
    text = _SINGLE_NEWLINE.sub(" ", text)
    return _PARAGRAPH_BREAK.sub("\n\n", text).strip()


def split_text(text: str, chunk_size: int = 1000, overlap: int = 200) -> list[str]:
    """Split *text* into windows of at most *chunk_size* characters.

    Each window ends at the last sentence break (``.``, ``!``, ``?`` or a
    newline) within its final 200 characters when there is one, and the
    next window starts *overlap* characters before the previous end.
    Blank windows are dropped.
    """
    if chunk_size <= 0:
        msg = "chunk_size must be positive"
        raise ValueError(msg)
    if not 0 <= overlap < chunk_size:
        msg = "overlap must be in [0, chunk_size)"
        raise ValueError(msg)

    text = normalize_whitespace(text)
    if not text:
        return []
    if len(text) <= chunk_size:
        return [text]

    lookback = min(200, chunk_size // 2)
    chunks: list[str] = []
    start = 0
    while start < len(text):
        end = start + chunk_size
        if end < len(text):
            for i in range(end - 1, end - lookback, -1):
                if text[i] in _BREAK_CHARS:
                    end = i + 1
                    break
        piece = text[start:end].strip()
        if piece:
            chunks.append(piece)
        if end >= len(text):
            break
        start = max(end - overlap, start + 1)
    return chunks
