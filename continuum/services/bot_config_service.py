"""Agent configuration stored in the database."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from continuum.models.bot_config import DEFAULT_BOT_CONFIG_ID, BotConfig
from continuum.prompts.system_prompt import DefaultSystemPrompt

logger = logging.getLogger(__name__)


class BotConfigService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_system_prompt(self, config_id: str = DEFAULT_BOT_CONFIG_ID) -> str:
        """Current system prompt, or the built-in default when none is stored."""
        try:
            config = self.db.query(BotConfig).filter(BotConfig.id == config_id).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Could not read bot_config, using default prompt: %s", e)
            return DefaultSystemPrompt.CONTENT
        if config is None or not (config.system_prompt or "").strip():
            return DefaultSystemPrompt.CONTENT
        return config.system_prompt

    def set_system_prompt(
        self, content: str, config_id: str = DEFAULT_BOT_CONFIG_ID
    ) -> BotConfig:
        config = self.db.query(BotConfig).filter(BotConfig.id == config_id).first()
        if config is None:
            config = BotConfig(id=config_id, system_prompt=content)
            self.db.add(config)
        else:
            config.system_prompt = content
        self.db.commit()
        self.db.refresh(config)
        return config
