"""Single-row agent configuration (system prompt editable without a deploy)."""

from __future__ import annotations

from sqlalchemy import Column, String, Text

from continuum.db import Base
from continuum.models.mixins import TimestampMixin

DEFAULT_BOT_CONFIG_ID = "default"


class BotConfig(Base, TimestampMixin):
    __tablename__ = "bot_config"

    id = Column(String(64), primary_key=True, default=DEFAULT_BOT_CONFIG_ID)
    system_prompt = Column(Text, nullable=False, default="")
