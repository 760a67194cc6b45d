"""Tests for VoicePostCallCommand."""

from datetime import datetime, timezone

import pytest

from continuum.commands.webhooks.voice_post_call_command import (
    CALL_SUMMARY_PREFIX,
    VoicePostCallCommand,
)
from continuum.core.background import BackgroundTaskCoordinator
from continuum.exceptions import StoreUnavailable
from continuum.models.error_log import ErrorLog
from continuum.models.message import Message
from continuum.models.user import User
from continuum.services.transcript_service import TranscriptService
from tests.fixtures.fake_fixtures import FakeMessagingAdapter, FakeTextGenerator

PHONE = "+15551234567"
ENDED_AT = 1740240000  # 2025-02-22 16:00 UTC


def post_call_payload(call_id="conv_1", summary="Discussed hiring a CFO.", caller=PHONE):
    return {
        "type": "post_call_transcription",
        "data": {
            "conversation_id": call_id,
            "metadata": {"caller_id": caller, "end_time_unix_secs": ENDED_AT},
            "analysis": {"transcript_summary": summary},
        },
    }


@pytest.fixture
def coordinator():
    return BackgroundTaskCoordinator()


@pytest.fixture
def scheduled():
    return []


@pytest.fixture
def build_command(db, coordinator, session_factory, messaging_adapter, notifier, scheduled):
    def _build(**overrides):
        kwargs = dict(
            coordinator=coordinator,
            text_generator=FakeTextGenerator("[VOICE] [2025-02-22] [FACT] Hiring a CFO"),
            messaging=messaging_adapter,
            notifier=notifier,
            followup_scheduler=lambda user_id, address: scheduled.append((user_id, address)),
            session_factory=session_factory,
        )
        kwargs.update(overrides)
        return VoicePostCallCommand(db, **kwargs)

    return _build


async def test_completed_call_is_recorded_and_indexed(
    db, build_command, coordinator, notifier, messaging_adapter, scheduled
):
    result = await build_command().execute(post_call_payload())
    await coordinator.drain()

    assert result == {"ok": True}
    user = db.query(User).one()
    message = db.query(Message).one()
    assert message.channel == "call"
    assert message.provider == "elevenlabs"
    assert message.provider_event_id == "conv_1"
    assert message.text == "Discussed hiring a CFO."

    records = TranscriptService(db).get_records(user.id)
    assert [r.external_call_id for r in records] == ["conv_1"]
    assert records[0].timestamp == datetime.fromtimestamp(ENDED_AT, tz=timezone.utc).isoformat()

    assert notifier.fetch_requests == 1
    assert scheduled == [(user.id, PHONE)]
    # New caller gets the introduction over the messaging channel
    assert [m.to for m in messaging_adapter.sent] == [PHONE]
    assert user.intro_sent is True


async def test_memory_is_updated_after_every_call(db, build_command, coordinator):
    generator = FakeTextGenerator("[VOICE] [2025-02-22] [FACT] Hiring a CFO")
    await build_command(text_generator=generator).execute(post_call_payload())
    await coordinator.drain()

    assert db.query(User).one().memory_summary == "[VOICE] [2025-02-22] [FACT] Hiring a CFO"
    assert CALL_SUMMARY_PREFIX.strip() in generator.prompts[0]
    assert "Discussed hiring a CFO." in generator.prompts[0]


async def test_duplicate_call_event_is_ignored(db, build_command, coordinator, notifier, scheduled):
    command = build_command()
    await command.execute(post_call_payload())
    await coordinator.drain()
    result = await command.execute(post_call_payload())
    await coordinator.drain()

    assert result == {"ok": True}
    assert db.query(Message).count() == 1
    user = db.query(User).one()
    assert len(TranscriptService(db).get_records(user.id)) == 1
    assert notifier.fetch_requests == 1
    assert len(scheduled) == 1


async def test_second_call_is_ranked_first(db, build_command, coordinator):
    command = build_command()
    await command.execute(post_call_payload(call_id="conv_1"))
    payload = post_call_payload(call_id="conv_2", summary="Board budget review.")
    payload["data"]["metadata"]["end_time_unix_secs"] = ENDED_AT + 86400
    await command.execute(payload)
    await coordinator.drain()

    user = db.query(User).one()
    ranked = TranscriptService(db).ranked(user.id)
    assert [r.external_call_id for r in ranked] == ["conv_2", "conv_1"]


async def test_followup_not_scheduled_without_messaging(db, build_command, coordinator, scheduled):
    unconfigured = FakeMessagingAdapter(configured=False)
    await build_command(messaging=unconfigured).execute(post_call_payload())
    await coordinator.drain()
    assert scheduled == []


async def test_malformed_event_is_acknowledged(db, build_command, notifier):
    result = await build_command().execute({"data": {"conversation_id": "conv_1"}})
    assert result == {"ok": True}
    assert db.query(User).count() == 0
    assert notifier.fetch_requests == 0


async def test_index_failure_is_logged(db, build_command, coordinator, monkeypatch, scheduled):
    def unavailable(self, *args, **kwargs):
        raise StoreUnavailable("users transcript index update")

    monkeypatch.setattr(TranscriptService, "upsert", unavailable)
    result = await build_command().execute(post_call_payload())
    await coordinator.drain()

    assert result == {"ok": False}
    error = db.query(ErrorLog).one()
    assert error.stage == "elevenlabs_post_call"
    assert error.channel == "call"
    assert error.details == {"call_id": "conv_1"}
    assert scheduled == []


async def test_redelivery_indexes_call_after_failed_index_write(
    db, build_command, coordinator, monkeypatch, notifier, scheduled
):
    def unavailable(self, *args, **kwargs):
        raise StoreUnavailable("users transcript index update")

    monkeypatch.setattr(TranscriptService, "upsert", unavailable)
    command = build_command()
    assert await command.execute(post_call_payload()) == {"ok": False}
    monkeypatch.undo()

    result = await command.execute(post_call_payload())
    await coordinator.drain()

    assert result == {"ok": True}
    assert db.query(Message).count() == 1
    user = db.query(User).one()
    assert [r.external_call_id for r in TranscriptService(db).get_records(user.id)] == ["conv_1"]
    assert user.memory_summary == "[VOICE] [2025-02-22] [FACT] Hiring a CFO"
    assert notifier.fetch_requests == 1
    assert scheduled == [(user.id, PHONE)]

    # Once indexed, further redeliveries are plain duplicates
    assert await command.execute(post_call_payload()) == {"ok": True}
    await coordinator.drain()
    assert notifier.fetch_requests == 1
