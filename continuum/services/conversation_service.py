"""Conversation threading: find or open the conversation new messages attach to."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from continuum.config import get_settings
from continuum.exceptions import StoreUnavailable
from continuum.models.conversation import Conversation
from continuum.schemas.messages import Channel

logger = logging.getLogger(__name__)


class ConversationService:
    """
    One open conversation per (user, channel scope) is reused until it goes idle.

    With idle_minutes unset every open conversation is reusable. With it set, a
    conversation whose last_active_at is older than the window is stale and a new
    one is opened; the stale row is left as is (closed_at stays NULL).

    The lookup and the insert are separate statements, so two concurrent first
    messages for the same (user, scope) can both open a conversation.
    """

    def __init__(
        self,
        db: Session,
        idle_minutes: Optional[int] = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.db = db
        if idle_minutes is None:
            idle_minutes = get_settings().conversation_idle_minutes
        self.idle_minutes = idle_minutes
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def get_conversation(self, conversation_id: UUID) -> Optional[Conversation]:
        return (
            self.db.query(Conversation)
            .filter(Conversation.id == conversation_id)
            .first()
        )

    def find_reusable(
        self, user_id: UUID, channel_scope: Channel | str, now: datetime
    ) -> Optional[Conversation]:
        scope = Channel(channel_scope).value
        query = self.db.query(Conversation).filter(
            Conversation.user_id == user_id,
            Conversation.channel_scope == scope,
            Conversation.closed_at.is_(None),
        )
        if self.idle_minutes:
            cutoff = now - timedelta(minutes=self.idle_minutes)
            query = query.filter(Conversation.last_active_at >= cutoff)
        return query.order_by(Conversation.last_active_at.desc()).first()

    def get_or_open(self, user_id: UUID, channel_scope: Channel | str) -> UUID:
        """Return the id of the conversation to attach new messages to."""
        now = self._clock()
        scope = Channel(channel_scope).value
        try:
            existing = self.find_reusable(user_id, scope, now)
            if existing is not None:
                existing.last_active_at = now
                self.db.commit()
                return existing.id
            conversation = Conversation(
                user_id=user_id,
                channel_scope=scope,
                opened_at=now,
                last_active_at=now,
                closed_at=None,
            )
            self.db.add(conversation)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("conversations get-or-open", e) from e
        logger.debug(
            "Opened conversation %s user_id=%s scope=%s", conversation.id, user_id, scope
        )
        return conversation.id

    def close(self, conversation_id: UUID) -> bool:
        conversation = self.get_conversation(conversation_id)
        if conversation is None or conversation.closed_at is not None:
            return False
        conversation.closed_at = self._clock()
        self.db.commit()
        return True

    def list_ids_for_user(self, user_id: UUID) -> List[UUID]:
        try:
            rows = (
                self.db.query(Conversation.id)
                .filter(Conversation.user_id == user_id)
                .all()
            )
        except SQLAlchemyError as e:
            raise StoreUnavailable("conversations list", e) from e
        return [row[0] for row in rows]
