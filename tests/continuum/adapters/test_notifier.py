"""Tests for TranscriptNotifier."""

from unittest.mock import MagicMock, patch

import requests

from continuum.adapters.notifier import TranscriptNotifier


@patch("continuum.adapters.notifier.requests.post")
async def test_send_transcript_payload(mock_post):
    mock_post.return_value = MagicMock(status_code=200, text="queued")
    notifier = TranscriptNotifier(webhook_url="https://hooks.example.com/x", timeout_seconds=5)
    assert await notifier.send_transcript("a@b.co", "Ada", "conv_1", "from your call") is True
    mock_post.assert_called_once_with(
        "https://hooks.example.com/x",
        json={
            "email": "a@b.co",
            "name": "Ada",
            "transcriptId": "conv_1",
            "description": "from your call",
        },
        timeout=5,
    )


@patch("continuum.adapters.notifier.requests.post")
async def test_request_fetch_payload(mock_post):
    mock_post.return_value = MagicMock(status_code=200, text="ok")
    notifier = TranscriptNotifier(webhook_url="https://hooks.example.com/x")
    assert await notifier.request_fetch() is True
    assert mock_post.call_args.kwargs["json"] == {"action": "fetch_transcripts"}


@patch("continuum.adapters.notifier.requests.post")
async def test_webhook_error_is_reported_not_raised(mock_post):
    mock_post.side_effect = requests.ConnectionError("refused")
    notifier = TranscriptNotifier(webhook_url="https://hooks.example.com/x")
    assert await notifier.request_fetch() is False


@patch("continuum.adapters.notifier.requests.post")
async def test_unconfigured_webhook_skips(mock_post):
    notifier = TranscriptNotifier(webhook_url="")
    assert notifier.enabled is False
    assert await notifier.request_fetch() is False
    mock_post.assert_not_called()
