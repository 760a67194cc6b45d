"""Promotable items (e.g. upcoming events) the agent may mention to users."""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, String, Text

from continuum.db import Base
from continuum.models.mixins import TimestampMixin


class PromotableItem(Base, TimestampMixin):
    __tablename__ = "promotable_items"

    id = Column(String(128), primary_key=True)
    title = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    url = Column(String(1024), nullable=True)
    starts_at = Column(DateTime(timezone=True), nullable=True, index=True)
    active = Column(Boolean, nullable=False, default=True)
