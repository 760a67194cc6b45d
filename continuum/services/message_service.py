"""
Message persistence.

ingest_inbound is the exactly-once gate for provider events: an existence check
short-circuits retries, and the (provider, provider_event_id) unique constraint
catches the concurrent duplicate the check cannot see. Both paths raise
AlreadyProcessed. It must run before any reply is generated.
"""

from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from continuum.exceptions import AlreadyProcessed, StoreUnavailable
from continuum.models.message import DIRECTION_AGENT, DIRECTION_USER, Message
from continuum.schemas.messages import Channel, HistoryEntry

logger = logging.getLogger(__name__)


class MessageService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_provider_event_id(
        self, provider: Optional[str], provider_event_id: str
    ) -> Optional[Message]:
        try:
            return (
                self.db.query(Message)
                .filter(
                    Message.provider == provider,
                    Message.provider_event_id == provider_event_id,
                )
                .first()
            )
        except SQLAlchemyError as e:
            raise StoreUnavailable("messages read", e) from e

    def ingest_inbound(
        self,
        conversation_id: UUID,
        channel: Channel | str,
        text: str,
        provider: Optional[str],
        provider_event_id: Optional[str] = None,
    ) -> Message:
        """
        Persist a user-authored message exactly once per provider event id.

        Raises:
            AlreadyProcessed: the event id exists already (sequential or concurrent duplicate).
            StoreUnavailable: any other datastore failure.
        """
        if provider_event_id:
            if self.find_by_provider_event_id(provider, provider_event_id) is not None:
                raise AlreadyProcessed(provider, provider_event_id)
        message = Message(
            conversation_id=conversation_id,
            channel=Channel(channel).value,
            direction=DIRECTION_USER,
            text=text,
            provider=provider,
            provider_event_id=provider_event_id or None,
        )
        try:
            self.db.add(message)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if provider_event_id:
                logger.info(
                    "Duplicate event %s:%s lost the insert race",
                    provider,
                    provider_event_id,
                )
                raise AlreadyProcessed(provider, provider_event_id) from e
            raise StoreUnavailable("messages insert", e) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("messages insert", e) from e
        self.db.refresh(message)
        return message

    def record_agent_message(
        self,
        conversation_id: UUID,
        channel: Channel | str,
        text: str,
        provider: Optional[str],
    ) -> Message:
        message = Message(
            conversation_id=conversation_id,
            channel=Channel(channel).value,
            direction=DIRECTION_AGENT,
            text=text,
            provider=provider,
        )
        try:
            self.db.add(message)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("messages insert", e) from e
        self.db.refresh(message)
        return message

    def count_user_messages(self, conversation_id: UUID) -> int:
        try:
            return (
                self.db.query(Message)
                .filter(
                    Message.conversation_id == conversation_id,
                    Message.direction == DIRECTION_USER,
                )
                .count()
            )
        except SQLAlchemyError as e:
            raise StoreUnavailable("messages count", e) from e

    def get_recent_history(
        self, conversation_ids: List[UUID], limit: int = 12
    ) -> List[HistoryEntry]:
        """Latest messages across the given conversations, oldest first."""
        if not conversation_ids:
            return []
        try:
            rows = (
                self.db.query(Message)
                .filter(Message.conversation_id.in_(conversation_ids))
                .order_by(Message.created_at.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            raise StoreUnavailable("messages read", e) from e
        history: List[HistoryEntry] = []
        for m in reversed(rows):
            role = "assistant" if m.direction == DIRECTION_AGENT else "user"
            channel = Channel.CALL if (m.channel or "").lower() == "call" else Channel.SMS
            history.append(
                HistoryEntry(role=role, content=(m.text or "").strip(), channel=channel)
            )
        return history


def format_history_for_call(history: List[HistoryEntry]) -> str:
    """Plain-text history handed to the voice agent at call start."""
    if not history:
        return "No recent history."
    lines = []
    for entry in history:
        who = "Agent" if entry.role == "assistant" else "User"
        lines.append(f"{who} (via {entry.channel_label}): {entry.content}")
    return "\n".join(lines).strip()
