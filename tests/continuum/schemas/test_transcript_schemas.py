"""Tests for transcript schema validation."""

import pytest
from pydantic import ValidationError

from continuum.schemas.transcript import TranscriptIntent, TranscriptReference


def test_intent_null_strings_become_none():
    intent = TranscriptIntent.model_validate(
        {"full_name": "null", "email": "None", "description": "", "wants_transcript": True}
    )
    assert intent.full_name is None
    assert intent.email is None
    assert intent.description is None
    assert intent.reference.is_empty


def test_reference_calls_back_must_be_positive():
    with pytest.raises(ValidationError):
        TranscriptReference(calls_back=0)


def test_reference_parses_iso_date():
    reference = TranscriptReference.model_validate({"on_date": "2025-02-22", "topic": "hiring"})
    assert reference.on_date.isoformat() == "2025-02-22"
    assert not reference.is_empty
