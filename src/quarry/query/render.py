"""Markdown rendering of retrieved chunks."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from quarry.models.contents import FileContentRecordBase


def _bullet(text: str) -> str:
    first, *rest = text.strip().splitlines() or [""]
    lines = [f"- {first}"]
    lines.extend(f"  {line}" if line else "" for line in rest)
    return "\n".join(lines)


def render_markdown(chunks: Iterable[FileContentRecordBase]) -> str:
    """Group *chunks* by ``file_path`` into ``## path`` sections of bullets.

    Groups appear in the order their first chunk appears in *chunks*.
    """
    groups: dict[str, list[str]] = {}
    for chunk in chunks:
        groups.setdefault(chunk.file_path, []).append(chunk.text)

    sections = []
    for path, texts in groups.items():
        body = "\n".join(_bullet(text) for text in texts)
        sections.append(f"## {path}\n\n{body}")
    return "\n\n".join(sections)
