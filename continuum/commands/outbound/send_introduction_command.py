"""
Command to send the one-time introduction (contact card link) to a user.

The message goes out over the user's own transport (WhatsApp or SMS) and the
intro flag is set only after the provider accepted it.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from continuum.adapters.base import BaseMessagingAdapter
from continuum.config import get_settings
from continuum.db import db_session
from continuum.schemas.messages import OutboundMessage
from continuum.services.user_service import UserService

logger = logging.getLogger(__name__)


def introduction_text() -> str:
    settings = get_settings()
    if settings.contact_card_url:
        return f"{settings.intro_message} {settings.contact_card_url}"
    return settings.intro_message


class SendIntroductionCommand:
    def __init__(
        self,
        adapter: BaseMessagingAdapter,
        session_factory: Callable[[], AbstractContextManager[Session]] = db_session,
    ) -> None:
        self.adapter = adapter
        self.session_factory = session_factory

    async def execute(self, user_id: UUID, raw_address: str) -> bool:
        """Returns True when an introduction was sent by this call."""
        with self.session_factory() as db:
            user = UserService(db).get_user(user_id)
            if user is None or user.intro_sent:
                return False
        if not self.adapter.is_configured:
            logger.info("Messaging not configured; introduction for %s skipped", user_id)
            return False

        result = await self.adapter.send(
            OutboundMessage(to=raw_address, text=introduction_text())
        )
        if not result.success:
            logger.warning("Introduction to user %s was not accepted", user_id)
            return False
        with self.session_factory() as db:
            UserService(db).mark_intro_sent(user_id)
        logger.info("Introduction sent to user %s (%s)", user_id, result.platform_message_id)
        return True
