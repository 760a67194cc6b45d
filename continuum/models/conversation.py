"""Conversation model: a bounded thread per (user, channel scope)."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import relationship

from continuum.db import Base
from continuum.models.mixins import utcnow


class Conversation(Base):
    """closed_at NULL means open; staleness is decided by last_active_at."""

    __tablename__ = "conversations"

    __table_args__ = (
        Index(
            "ix_conversations_user_scope_open",
            "user_id",
            "channel_scope",
            "closed_at",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    channel_scope = Column(String(32), nullable=False)
    opened_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_active_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="conversations")
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.created_at",
    )
