"""LanguageModelEndpoint model — singleton LLM endpoint configuration."""

from __future__ import annotations

from sqlmodel import Field, SQLModel

from quarry.models.files import epoch_seconds

ENDPOINT_ID: int = 1
"""Fixed primary key of the only endpoint row."""


class LanguageModelEndpoint(SQLModel, table=True):
    """Credentials and availability flag for the remote language model.

    ``state`` is the circuit breaker: ``False`` means answers bypass the
    model and render raw retrieval results.
    """

    __tablename__ = "quarry_llm_endpoint"

    id: int = Field(default=ENDPOINT_ID, primary_key=True)
    url: str = Field(default="")
    token: str = Field(default="")
    state: bool = Field(default=True)
    time: int = Field(default_factory=epoch_seconds)
