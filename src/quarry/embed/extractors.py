"""Text extraction — closed dispatch on file extension."""

from __future__ import annotations

import logging
from pathlib import Path
from zipfile import BadZipFile
from typing import TYPE_CHECKING

import docx
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from quarry.exceptions import DocumentNotFoundError, IoError, UnsupportedFormatError

if TYPE_CHECKING:
    import os
    from collections.abc import Callable

logger = logging.getLogger(__name__)


def clean_text(text: str) -> str:
    """Strip spaces around every line and drop empty lines."""
    lines = (line.strip(" \t\r") for line in text.splitlines())
    return "\n".join(line for line in lines if line)


# ---------------------------------------------------------------------------
# Per-format readers
# ---------------------------------------------------------------------------


def _read_plain(path: Path) -> str:
    raw = path.read_bytes()
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def _read_pdf(path: Path) -> str:
    try:
        reader = PdfReader(str(path))
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    except PyPdfError as exc:
        msg = f"Could not read PDF {path}: {exc}"
        raise IoError(msg) from exc


def _read_docx(path: Path) -> str:
    try:
        document = docx.Document(str(path))
    except (PackageNotFoundError, BadZipFile, KeyError, ValueError) as exc:
        msg = f"Could not read DOCX {path}: {exc}"
        raise IoError(msg) from exc
    parts = [paragraph.text for paragraph in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            parts.extend(cell.text for cell in row.cells)
    return "\n".join(parts)


_READERS: dict[str, Callable[[Path], str]] = {
    "txt": _read_plain,
    "md": _read_plain,
    "pdf": _read_pdf,
    "docx": _read_docx,
}

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(_READERS)


def is_supported(path: str | os.PathLike[str]) -> bool:
    return Path(path).suffix.lower().lstrip(".") in SUPPORTED_EXTENSIONS


def extract_text(path: str | os.PathLike[str]) -> str:
    """Return the cleaned text content of *path*.

    Raises:
        DocumentNotFoundError: *path* is not an existing regular file.
        UnsupportedFormatError: the extension is not txt, md, pdf or docx.
        IoError: the file exists but could not be read or parsed.
    """
    p = Path(path)
    if not p.is_file():
        msg = f"File not found: {p}"
        raise DocumentNotFoundError(msg)
    ext = p.suffix.lower().lstrip(".")
    reader = _READERS.get(ext)
    if reader is None:
        msg = f"Unsupported file type {ext or '<none>'!r}: {p}"
        raise UnsupportedFormatError(msg)
    try:
        text = reader(p)
    except OSError as exc:
        msg = f"Could not read {p}: {exc}"
        raise IoError(msg) from exc
    logger.debug("Extracted %d characters from %s", len(text), p)
    return clean_text(text)
