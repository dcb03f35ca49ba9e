"""Embedding output types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class EmbeddedChunk:
    """A chunk of text and its embedding vector.

    Attributes:
        text: The chunk content.
        vector: Embedding of ``text``.
        metadata: ``file_name`` (resolved source path), ``created`` and
            ``modified`` (epoch seconds) for file chunks; empty for raw text.
    """

    text: str
    vector: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)
