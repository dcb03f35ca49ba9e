"""Settings — tunables for storage, ingestion, retrieval, and the LLM client."""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from quarry.exceptions import ConfigError

if TYPE_CHECKING:
    from collections.abc import Mapping

ENV_PREFIX = "QUARRY_"

_DEFAULT_DATA_DIR = Path.home() / ".quarry"

EMBEDDING_PROVIDERS = ("sentence-transformers", "openai")


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime configuration.

    Attributes:
        data_dir: Directory holding the SQLite database.
        db_name: Database file name inside *data_dir*.
        embedding_dim: Length of every stored embedding vector.
        embedding_provider: ``"sentence-transformers"`` (local) or ``"openai"``.
        embedding_model: Model name passed to the embedding provider.
        embedding_base_url: OpenAI-compatible server for the ``openai`` provider;
            empty means api.openai.com.
        embedding_api_key: Key for the ``openai`` provider; empty falls back to
            ``OPENAI_API_KEY``.
        chunk_size: Target chunk length in characters.
        chunk_overlap: Characters shared between consecutive chunks.
        pending_batch_size: Pending files fetched per producer sweep.
        idle_backoff: Seconds the producer sleeps when a sweep dispatched nothing.
        empty_retry_interval: Seconds before a file with no embeddable content is retried.
        channel_capacity: Bound of the producer → consumer queue.
        embed_concurrency: Files embedded concurrently within one sweep.
        maintenance_interval: Seconds between table compactions.
        top_k: Passages retrieved per question.
        max_distance: Cosine distance above which passages are discarded.
        llm_model: Chat model requested from the language-model endpoint.
        llm_timeout: Per-request timeout for the language-model client.
        llm_max_retries: Client-side retries for the language-model client.
    """

    data_dir: Path = field(default_factory=lambda: _DEFAULT_DATA_DIR)
    db_name: str = "quarry.db"
    embedding_dim: int = 384
    embedding_provider: str = "sentence-transformers"
    embedding_model: str = "all-MiniLM-L6-v2"
    embedding_base_url: str = ""
    embedding_api_key: str = ""
    chunk_size: int = 1000
    chunk_overlap: int = 200
    pending_batch_size: int = 10
    idle_backoff: float = 3.0
    empty_retry_interval: float = 60.0
    channel_capacity: int = 10_000
    embed_concurrency: int = 4
    maintenance_interval: float = 3600.0
    top_k: int = 5
    max_distance: float = 0.6
    llm_model: str = "deepseek-r1"
    llm_timeout: float = 60.0
    llm_max_retries: int = 2

    def __post_init__(self) -> None:
        if not isinstance(self.data_dir, Path):
            object.__setattr__(self, "data_dir", Path(self.data_dir))

        positive = (
            "embedding_dim",
            "chunk_size",
            "pending_batch_size",
            "channel_capacity",
            "embed_concurrency",
            "top_k",
        )
        for name in positive:
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)!r}")

        non_negative = (
            "chunk_overlap",
            "idle_backoff",
            "empty_retry_interval",
            "maintenance_interval",
            "llm_timeout",
            "llm_max_retries",
        )
        for name in non_negative:
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative, got {getattr(self, name)!r}")

        if self.chunk_overlap >= self.chunk_size:
            raise ConfigError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        # Cosine distance lives in [0, 2].
        if not 0.0 <= self.max_distance <= 2.0:
            raise ConfigError(f"max_distance must be within [0, 2], got {self.max_distance!r}")
        if not self.db_name:
            raise ConfigError("db_name must not be empty")
        if self.embedding_provider not in EMBEDDING_PROVIDERS:
            raise ConfigError(
                f"embedding_provider must be one of {', '.join(EMBEDDING_PROVIDERS)}, "
                f"got {self.embedding_provider!r}"
            )

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @property
    def db_url(self) -> str:
        """SQLAlchemy async URL for the catalog database."""
        return f"sqlite+aiosqlite:///{self.db_path}"

    def replace(self, **changes: Any) -> Settings:
        """Return a copy with *changes* applied (validated again)."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from ``QUARRY_<FIELD>`` environment variables.

        Unset variables keep their defaults.  Raises :class:`ConfigError`
        when a value cannot be parsed or fails validation.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        overrides: dict[str, Any] = {}
        for f in dataclasses.fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            overrides[f.name] = _parse(f.name, raw, getattr(defaults, f.name))
        return cls(**overrides)


def _parse(name: str, raw: str, default: Any) -> Any:
    """Coerce *raw* to the type of *default*."""
    raw = raw.strip()
    try:
        if isinstance(default, Path):
            if not raw:
                raise ValueError("empty path")
            return Path(raw).expanduser()
        if isinstance(default, bool):
            lowered = raw.lower()
            if lowered in ("1", "true", "yes", "on"):
                return True
            if lowered in ("0", "false", "no", "off"):
                return False
            raise ValueError(f"not a boolean: {raw!r}")
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}") from exc
    return raw
