"""Transcript index records and reference shapes."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

LEGACY_SUMMARY = "Older call"


class TranscriptRecord(BaseModel):
    """One completed call in a user's transcript index."""

    external_call_id: str
    timestamp: Optional[Any] = None  # ISO-8601 UTC string; legacy rows may hold anything
    summary: str = LEGACY_SUMMARY

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class RankedTranscript(BaseModel):
    """A record labelled with its 1-based position, newest first."""

    position: int
    instant: float  # epoch seconds; -inf when the stored time is unparsable
    record: TranscriptRecord

    @property
    def external_call_id(self) -> str:
        return self.record.external_call_id

    @property
    def has_valid_time(self) -> bool:
        return self.instant != float("-inf")


class TranscriptReference(BaseModel):
    """
    Structured form of "the call on Feb 22", "2 calls back", "the one about hiring".
    When several fields are set, on_date wins over calls_back, which wins over topic.
    """

    on_date: Optional[date] = None
    calls_back: Optional[int] = Field(default=None, ge=1)
    topic: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.on_date is None and self.calls_back is None and not self.topic


class TranscriptIntent(BaseModel):
    """Output of the intent extraction call on an SMS turn."""

    full_name: Optional[str] = None
    email: Optional[str] = None
    wants_transcript: bool = False
    reference: TranscriptReference = Field(default_factory=TranscriptReference)
    description: Optional[str] = Field(
        default=None,
        description='Short email description, e.g. "from your call on Feb 22nd regarding hiring".',
    )

    @field_validator("full_name", "email", "description", mode="before")
    @classmethod
    def _null_strings(cls, value: Any) -> Any:
        # Models occasionally spell out the JSON null
        if isinstance(value, str) and value.strip().lower() in ("", "null", "none"):
            return None
        return value
