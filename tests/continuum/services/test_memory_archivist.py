"""Tests for the append-only memory contract and the archivist."""

from datetime import datetime, timezone

import pytest

from continuum.exceptions import GenerationUnavailable
from continuum.schemas.messages import Channel
from continuum.services.memory_archivist import (
    MemoryArchivist,
    MemoryCadence,
    merge_memory,
    tag_line,
)
from tests.fixtures.fake_fixtures import FakeTextGenerator

OLD = "[SMS] [2025-01-01] [NAME] User is Dana\n[VOICE] [2025-01-03] [COMPANY] Works at Acme"
FIXED_NOW = datetime(2025, 2, 22, 15, 0, tzinfo=timezone.utc)


def test_merge_appends_new_lines_after_old():
    candidate = OLD + "\n[SMS] [2025-02-22] [GOAL] Wants to join a board"
    merged = merge_memory(OLD, candidate, "SMS")
    assert merged == candidate
    assert merged.startswith(OLD)


def test_merge_identical_candidate_means_no_write():
    assert merge_memory(OLD, OLD, "SMS") is None


def test_merge_rejects_rewritten_line():
    candidate = (
        "[SMS] [2025-01-01] [NAME] User is Dana Smith\n"
        "[VOICE] [2025-01-03] [COMPANY] Works at Acme\n"
        "[SMS] [2025-02-22] [FACT] New fact"
    )
    assert merge_memory(OLD, candidate, "SMS") is None


def test_merge_rejects_dropped_or_reordered_lines():
    lines = OLD.splitlines()
    assert merge_memory(OLD, lines[1] + "\n" + lines[0] + "\n[SMS] x", "SMS") is None
    assert merge_memory(OLD, lines[1] + "\n[SMS] x", "SMS") is None


@pytest.mark.parametrize("candidate", ["", "   \n  ", "```\n```"])
def test_merge_empty_candidate_means_no_write(candidate):
    assert merge_memory(OLD, candidate, "SMS") is None


def test_merge_tags_untagged_new_lines_with_turn_channel():
    candidate = OLD + "\n[2025-02-22] [FACT] Prefers mornings\n- Has two kids"
    merged = merge_memory(OLD, candidate, "VOICE")
    new_lines = merged.splitlines()[2:]
    assert new_lines == [
        "[VOICE] [2025-02-22] [FACT] Prefers mornings",
        "[VOICE] Has two kids",
    ]


def test_merge_drops_duplicate_new_lines():
    candidate = OLD + "\n[VOICE] [2025-01-03] [COMPANY] Works at Acme\n[SMS] a\n[SMS] a"
    merged = merge_memory(OLD, candidate, "SMS")
    assert merged == OLD + "\n[SMS] a"


def test_merge_from_empty_memory():
    assert merge_memory("", "[SMS] [2025-02-22] [NAME] Sam", "SMS") == (
        "[SMS] [2025-02-22] [NAME] Sam"
    )


def test_merge_ignores_trailing_whitespace_on_old_lines():
    candidate = OLD.replace("Dana", "Dana   ") + "\n[SMS] new"
    merged = merge_memory(OLD, candidate, "SMS")
    assert merged == OLD + "\n[SMS] new"


def test_tag_line_replaces_model_written_tag():
    assert tag_line("[voice] something", "SMS") == "[SMS] something"
    assert tag_line("- [SMS] [2025-02-22] [FACT] x", "VOICE") == "[VOICE] [2025-02-22] [FACT] x"
    assert tag_line("[SMS] x", "SMS") == "[SMS] x"
    assert tag_line("[VOICE]", "SMS") == ""


def test_merge_retags_lines_written_with_other_channel():
    candidate = OLD + "\n[VOICE] [2025-02-22] [FACT] Prefers texting"
    merged = merge_memory(OLD, candidate, "SMS")
    assert merged == OLD + "\n[SMS] [2025-02-22] [FACT] Prefers texting"


def test_merge_drops_known_fact_retagged_with_other_channel():
    candidate = OLD + "\n[SMS] [2025-01-03] [COMPANY] Works at Acme"
    assert merge_memory(OLD, candidate, "SMS") is None


@pytest.mark.parametrize(
    "count,due", [(0, False), (1, False), (2, False), (3, True), (4, False), (6, True)]
)
def test_cadence_every_third_sms_message(count, due):
    assert MemoryCadence(every_n_messages=3).is_due(Channel.SMS, count) is due


def test_cadence_always_after_call():
    assert MemoryCadence(every_n_messages=3).is_due(Channel.CALL, 1) is True


async def test_archivist_writes_validated_memory(db, setup_user):
    generator = FakeTextGenerator("[SMS] [2025-02-22] [NAME] User is Sam")
    archivist = MemoryArchivist(db, generator, clock=lambda: FIXED_NOW)
    written = await archivist.update(setup_user.id, "I'm Sam", "Nice to meet you", Channel.SMS)
    assert written is True
    db.refresh(setup_user)
    assert setup_user.memory_summary == "[SMS] [2025-02-22] [NAME] User is Sam"
    assert "[2025-02-22]" in generator.prompts[0]
    assert "[SMS]" in generator.prompts[0]


async def test_archivist_keeps_memory_when_generation_fails(db, setup_user_with_profile):
    user = setup_user_with_profile
    before = user.memory_summary
    generator = FakeTextGenerator(GenerationUnavailable("timeout"))
    archivist = MemoryArchivist(db, generator, clock=lambda: FIXED_NOW)
    assert await archivist.update(user.id, "hi", "hello", Channel.SMS) is False
    db.refresh(user)
    assert user.memory_summary == before


async def test_archivist_keeps_memory_when_candidate_rewrites(db, setup_user_with_profile):
    user = setup_user_with_profile
    before = user.memory_summary
    generator = FakeTextGenerator("[SMS] Condensed everything into one line")
    archivist = MemoryArchivist(db, generator, clock=lambda: FIXED_NOW)
    assert await archivist.update(user.id, "hi", "hello", Channel.CALL) is False
    db.refresh(user)
    assert user.memory_summary == before
    assert user.last_seen_at is None


async def test_archivist_uses_voice_tag_for_calls(db, setup_user):
    generator = FakeTextGenerator("Discussed succession planning")
    archivist = MemoryArchivist(db, generator, clock=lambda: FIXED_NOW)
    assert await archivist.update(setup_user.id, "(call)", "transcript", Channel.CALL)
    db.refresh(setup_user)
    assert setup_user.memory_summary == "[VOICE] Discussed succession planning"
