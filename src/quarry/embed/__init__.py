"""Embedding collaborator — extraction, chunking, providers, DocumentEmbedder."""

from quarry.embed.chunking import split_text
from quarry.embed.embedder import DocumentEmbedder
from quarry.embed.extractors import SUPPORTED_EXTENSIONS, extract_text, is_supported
from quarry.embed.protocols import EmbeddingProvider, TextEmbedder
from quarry.embed.types import EmbeddedChunk

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "DocumentEmbedder",
    "EmbeddedChunk",
    "EmbeddingProvider",
    "TextEmbedder",
    "extract_text",
    "is_supported",
    "split_text",
]
