"""Exception hierarchy for Quarry."""


class QuarryError(Exception):
    """Base exception for all Quarry errors."""


class IoError(QuarryError):
    """Raised on filesystem failures while reading source documents."""


class DocumentNotFoundError(IoError):
    """Raised when a document path does not exist."""


class UnsupportedFormatError(IoError):
    """Raised when no text extractor is registered for a file extension."""


class StorageError(QuarryError):
    """Raised on vector store failures (DB connection, index I/O, schema mismatch)."""


class EmbeddingError(QuarryError):
    """Raised when the embedding model or tokenizer fails on an input."""


class LlmError(QuarryError):
    """Raised when a language-model call fails."""


class LlmAuthError(LlmError):
    """Raised when the language-model endpoint rejects the credentials."""


class LlmNetworkError(LlmError):
    """Raised when the language-model endpoint cannot be reached."""


class ConfigError(QuarryError):
    """Raised when settings or persisted configuration are malformed."""
