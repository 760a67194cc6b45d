"""Outbound notification webhook (transcript emails and fetch triggers)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import requests

from continuum.config import get_settings

logger = logging.getLogger(__name__)

FETCH_TRANSCRIPTS_ACTION = "fetch_transcripts"


class TranscriptNotifier:
    def __init__(
        self, webhook_url: Optional[str] = None, timeout_seconds: Optional[int] = None
    ) -> None:
        settings = get_settings()
        self.webhook_url = webhook_url if webhook_url is not None else settings.transcript_webhook_url
        self.timeout_seconds = timeout_seconds or settings.transcript_webhook_timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def _post(self, payload: dict[str, Any]) -> bool:
        try:
            response = requests.post(
                self.webhook_url, json=payload, timeout=self.timeout_seconds
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error("Notification webhook failed: %s", e)
            return False
        logger.info("Notification webhook responded: %s", response.text[:200])
        return True

    async def post(self, payload: dict[str, Any]) -> bool:
        if not self.enabled:
            logger.debug("Notification webhook not configured; skipping")
            return False
        return await asyncio.to_thread(self._post, payload)

    async def send_transcript(
        self, email: str, name: str, transcript_id: str, description: str
    ) -> bool:
        logger.info("Requesting transcript %s for %s", transcript_id, email)
        return await self.post(
            {
                "email": email,
                "name": name,
                "transcriptId": transcript_id,
                "description": description,
            }
        )

    async def request_fetch(self) -> bool:
        return await self.post({"action": FETCH_TRANSCRIPTS_ACTION})
