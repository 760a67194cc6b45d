"""User model: one row per canonical phone address, shared by SMS and voice."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Text, Uuid
from sqlalchemy.orm import relationship

from continuum.db import Base
from continuum.models.mixins import TimestampMixin
from continuum.models.column_types import JSONType


class User(Base, TimestampMixin):
    """
    Durable identity for an end user.

    memory_summary is the append-only long-term memory log. transcript_index holds
    one dict per completed call (legacy rows may contain bare call id strings).
    promotion_counts maps promotable item id to the number of confirmed sends.
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    phone = Column(String(64), unique=True, nullable=False, index=True)
    full_name = Column(String(256), nullable=True)
    email = Column(String(320), nullable=True)
    memory_summary = Column(Text, nullable=False, default="")
    transcript_index = Column(JSONType, nullable=False, default=list)
    promotion_counts = Column(JSONType, nullable=False, default=dict)
    intro_sent = Column(Boolean, nullable=False, default=False)
    last_seen_at = Column(DateTime(timezone=True), nullable=True)

    conversations = relationship(
        "Conversation",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def first_name(self) -> str | None:
        if not self.full_name:
            return None
        return self.full_name.split(" ")[0]
