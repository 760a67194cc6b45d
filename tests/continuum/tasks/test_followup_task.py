from contextlib import nullcontext
from unittest.mock import MagicMock

import pytest

from continuum.models.message import Message
from continuum.tasks import followup_task
from continuum.tasks.followup_task import send_post_call_followup_task
from tests.fixtures.fake_fixtures import FakeMessagingAdapter


@pytest.fixture
def patched_task(db, monkeypatch):
    adapter = FakeMessagingAdapter()
    monkeypatch.setattr(followup_task, "db_session", lambda: nullcontext(db))
    monkeypatch.setattr(
        followup_task, "TwilioSmsAdapter", MagicMock(from_settings=lambda: adapter)
    )
    return adapter


def test_followup_is_sent_and_recorded(db, setup_user_with_profile, patched_task):
    user = setup_user_with_profile
    result = send_post_call_followup_task(str(user.id), user.phone)

    assert result == "SM1"
    assert patched_task.sent[0].to == user.phone
    assert db.query(Message).count() == 1


def test_invalid_user_id_is_dropped(patched_task):
    assert send_post_call_followup_task("not-a-uuid", "+15550000000") is None
    assert patched_task.sent == []


def test_rejected_send_returns_none(db, setup_user, patched_task):
    patched_task.success = False
    assert send_post_call_followup_task(str(setup_user.id), setup_user.phone) is None
