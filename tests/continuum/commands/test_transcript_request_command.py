"""Tests for TranscriptRequestCommand."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from continuum.commands.transcript_request_command import (
    DEFAULT_DESCRIPTION,
    TranscriptRequestCommand,
)
from continuum.exceptions import GenerationUnavailable
from continuum.schemas.transcript import TranscriptIntent, TranscriptReference
from continuum.services.transcript_service import TranscriptService
from tests.fixtures.fake_fixtures import FakeIntentExtractor


@pytest.fixture
def with_two_calls(db, setup_user_with_profile):
    transcripts = TranscriptService(db)
    transcripts.upsert(
        setup_user_with_profile.id,
        "conv_hiring",
        datetime(2025, 2, 10, 15, tzinfo=timezone.utc),
        "We talked about hiring a new CFO for the foundation.",
    )
    transcripts.upsert(
        setup_user_with_profile.id,
        "conv_budget",
        datetime(2025, 2, 20, 15, tzinfo=timezone.utc),
        "Budget review for next quarter.",
    )
    return setup_user_with_profile


def build(extractor, notifier, session_factory):
    return TranscriptRequestCommand(extractor, notifier, session_factory)


async def test_message_without_keywords_skips_extraction(setup_user, notifier, session_factory):
    extractor = FakeIntentExtractor()
    result = await build(extractor, notifier, session_factory).execute(setup_user.id, "thanks")
    assert result is None
    assert extractor.prompts == []


async def test_stated_name_and_email_fill_the_profile(db, setup_user, notifier, session_factory):
    extractor = FakeIntentExtractor(
        TranscriptIntent(full_name="Ada Lovelace", email="ada@example.com")
    )
    result = await build(extractor, notifier, session_factory).execute(
        setup_user.id, "I'm Ada Lovelace, my email is ada@example.com"
    )

    assert result is None
    db.refresh(setup_user)
    assert setup_user.full_name == "Ada Lovelace"
    assert setup_user.email == "ada@example.com"
    assert notifier.transcripts == []


async def test_existing_profile_is_not_overwritten(db, setup_user_with_profile, notifier, session_factory):
    original_email = setup_user_with_profile.email
    extractor = FakeIntentExtractor(TranscriptIntent(email="other@example.com"))
    await build(extractor, notifier, session_factory).execute(
        setup_user_with_profile.id, "my email is other@example.com"
    )
    db.refresh(setup_user_with_profile)
    assert setup_user_with_profile.email == original_email


async def test_most_recent_call_is_sent_on_yes(with_two_calls, notifier, session_factory):
    extractor = FakeIntentExtractor(
        TranscriptIntent(wants_transcript=True, reference=TranscriptReference(calls_back=1))
    )
    dispatch = await build(extractor, notifier, session_factory).execute(with_two_calls.id, "yes")

    assert dispatch.transcript_id == "conv_budget"
    assert dispatch.description == DEFAULT_DESCRIPTION
    assert notifier.transcripts[0]["transcriptId"] == "conv_budget"
    assert notifier.transcripts[0]["email"] == with_two_calls.email


async def test_topic_reference_picks_matching_call(with_two_calls, notifier, session_factory):
    extractor = FakeIntentExtractor(
        TranscriptIntent(
            wants_transcript=True,
            reference=TranscriptReference(topic="hiring"),
            description="from your call regarding hiring",
        )
    )
    dispatch = await build(extractor, notifier, session_factory).execute(
        with_two_calls.id, "send me the transcript about hiring"
    )
    assert dispatch.transcript_id == "conv_hiring"
    assert dispatch.description == "from your call regarding hiring"


async def test_prompt_lists_calls_newest_first(with_two_calls, notifier, session_factory):
    extractor = FakeIntentExtractor()
    await build(extractor, notifier, session_factory).execute(
        with_two_calls.id, "send the transcript"
    )
    prompt = extractor.prompts[0]
    assert prompt.index("Budget review") < prompt.index("hiring a new CFO")


async def test_request_without_email_is_not_sent(db, setup_user, notifier, session_factory):
    TranscriptService(db).upsert(
        setup_user.id, "conv_1", datetime(2025, 2, 10, tzinfo=timezone.utc), "Call text"
    )
    extractor = FakeIntentExtractor(
        TranscriptIntent(wants_transcript=True, reference=TranscriptReference(calls_back=1))
    )
    result = await build(extractor, notifier, session_factory).execute(
        setup_user.id, "send me the transcript"
    )
    assert result is None
    assert notifier.transcripts == []


async def test_request_without_calls_is_not_sent(setup_user_with_profile, notifier, session_factory):
    extractor = FakeIntentExtractor(TranscriptIntent(wants_transcript=True))
    result = await build(extractor, notifier, session_factory).execute(
        setup_user_with_profile.id, "send me the transcript"
    )
    assert result is None
    assert notifier.transcripts == []


async def test_extraction_failure_is_swallowed(with_two_calls, notifier, session_factory):
    extractor = MagicMock()
    extractor.extract = AsyncMock(side_effect=GenerationUnavailable("model down"))
    result = await build(extractor, notifier, session_factory).execute(
        with_two_calls.id, "send me the transcript"
    )
    assert result is None
    assert notifier.transcripts == []
