"""Response model of the remote snippet store's create endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class CreatedSnippet(BaseModel):
    """A snippet as returned by ``POST /api/snippets``.

    The remote store answers in camelCase; only ``id`` is required, the
    rest is informational.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    text: str | None = None
    source_url: str | None = Field(default=None, validation_alias=AliasChoices("sourceUrl", "source_url"))
    source_domain: str | None = Field(
        default=None, validation_alias=AliasChoices("sourceDomain", "source_domain")
    )
    source_title: str | None = Field(default=None, validation_alias=AliasChoices("sourceTitle", "source_title"))
    saved_at: str | None = Field(default=None, validation_alias=AliasChoices("savedAt", "saved_at"))

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        # Integer primary keys are common on the remote side.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value
