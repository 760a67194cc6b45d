"""ErrorLog model: primary-path failures kept for later diagnosis."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, String, Text, Uuid

from continuum.db import Base
from continuum.models.mixins import utcnow
from continuum.models.column_types import JSONType


class ErrorLog(Base):
    __tablename__ = "error_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    phone = Column(String(64), nullable=True)
    user_id = Column(Uuid, nullable=True)
    conversation_id = Column(Uuid, nullable=True)
    channel = Column(String(32), nullable=False, default="unknown")
    stage = Column(String(128), nullable=False, default="unknown")
    message = Column(Text, nullable=False, default="unknown")
    details = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
