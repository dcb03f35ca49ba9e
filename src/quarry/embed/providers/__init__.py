"""Embedding providers."""

from quarry.embed.protocols import EmbeddingProvider
from quarry.embed.providers.openai import OpenAIEmbedding
from quarry.embed.providers.sentence_transformers import SentenceTransformerEmbedding

__all__ = [
    "EmbeddingProvider",
    "OpenAIEmbedding",
    "SentenceTransformerEmbedding",
]
