"""Message model: one row per inbound (user) or outbound (agent) turn."""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from continuum.db import Base
from continuum.models.mixins import utcnow

DIRECTION_USER = "user"
DIRECTION_AGENT = "agent"


class Message(Base):
    """
    provider_event_id is the upstream id of an inbound event (Twilio MessageSid,
    ElevenLabs conversation id). The unique constraint is what makes ingestion
    exactly-once; NULL ids are never deduplicated.
    """

    __tablename__ = "messages"

    __table_args__ = (
        UniqueConstraint(
            "provider",
            "provider_event_id",
            name="uq_messages_provider_event_id",
        ),
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        Uuid,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    channel = Column(String(32), nullable=False)
    direction = Column(String(16), nullable=False)  # 'user' | 'agent'
    text = Column(Text, nullable=False, default="")
    provider = Column(String(64), nullable=True)
    provider_event_id = Column(String(256), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    conversation = relationship("Conversation", back_populates="messages")
