"""
Command to act on a transcript request found in an SMS turn.

Keyword-gated. The extraction call fills in missing profile details and turns
the user's words into a TranscriptReference; the transcript itself is chosen by
resolve_reference, never by the model. A resolved request for a user with an
email goes to the notification webhook.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.orm import Session

from continuum.adapters.notifier import TranscriptNotifier
from continuum.db import db_session
from continuum.exceptions import GenerationUnavailable
from continuum.prompts.intent import build_intent_prompt, mentions_intent_keyword
from continuum.schemas.transcript import TranscriptIntent
from continuum.services.conversation_service import ConversationService
from continuum.services.message_service import MessageService, format_history_for_call
from continuum.services.transcript_service import TranscriptService, resolve_reference
from continuum.services.user_service import UserService

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "from our recent conversation"
INTENT_HISTORY_LIMIT = 3


class IntentSource(Protocol):
    async def extract(self, prompt: str) -> TranscriptIntent: ...


class TranscriptDispatch(BaseModel):
    email: str
    name: str
    transcript_id: str
    description: str


class TranscriptRequestCommand:
    def __init__(
        self,
        extractor: IntentSource,
        notifier: TranscriptNotifier,
        session_factory: Callable[[], AbstractContextManager[Session]] = db_session,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.extractor = extractor
        self.notifier = notifier
        self.session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def execute(self, user_id: UUID, text: str) -> Optional[TranscriptDispatch]:
        if not mentions_intent_keyword(text):
            logger.debug("No transcript keywords in message from user %s", user_id)
            return None

        with self.session_factory() as db:
            user = UserService(db).get_user(user_id)
            if user is None:
                return None
            transcripts = TranscriptService(db)
            ranked = transcripts.ranked(user_id)
            local_tz = transcripts.local_tz
            history = MessageService(db).get_recent_history(
                ConversationService(db).list_ids_for_user(user_id),
                limit=INTENT_HISTORY_LIMIT,
            )
            prompt = build_intent_prompt(
                user_text=text,
                full_name=user.full_name,
                email=user.email,
                history_text=format_history_for_call(history),
                transcripts=ranked,
                now_local=self._clock().astimezone(local_tz),
            )

        try:
            intent = await self.extractor.extract(prompt)
        except GenerationUnavailable as e:
            logger.warning("Intent extraction unavailable for user %s: %s", user_id, e)
            return None

        with self.session_factory() as db:
            users = UserService(db)
            users.fill_profile(user_id, intent.full_name, intent.email)
            user = users.get_user(user_id)
            email = user.email if user else None
            name = (user.full_name if user else None) or "User"

        if not intent.wants_transcript:
            return None
        picked = resolve_reference(ranked, intent.reference, local_tz)
        if picked is None:
            logger.info("No transcript matched request from user %s: %s", user_id, intent.reference)
            return None
        if not email or "@" not in email:
            logger.info("Transcript %s requested but user %s has no email", picked.external_call_id, user_id)
            return None

        dispatch = TranscriptDispatch(
            email=email,
            name=name,
            transcript_id=picked.external_call_id,
            description=intent.description or DEFAULT_DESCRIPTION,
        )
        await self.notifier.send_transcript(
            dispatch.email, dispatch.name, dispatch.transcript_id, dispatch.description
        )
        return dispatch
