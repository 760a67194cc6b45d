"""Process-wide logging setup. Call LoggingConfig() once at startup."""

from __future__ import annotations

import logging
import logging.config
from typing import Optional

from continuum.config import get_settings

ROOT_LOGGER_NAME = "continuum"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class LoggingConfig:
    """Configure stdlib logging from settings (LOG_LEVEL)."""

    _configured = False

    def __init__(self, level: Optional[str] = None) -> None:
        if LoggingConfig._configured:
            return
        settings = get_settings()
        self.level = (level or settings.log_level or "INFO").upper()
        logging.config.dictConfig(self._build_config())
        LoggingConfig._configured = True

    def _build_config(self) -> dict:
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": LOG_FORMAT}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                }
            },
            "loggers": {
                ROOT_LOGGER_NAME: {
                    "handlers": ["console"],
                    "level": self.level,
                    "propagate": False,
                },
                # httpx logs every request at INFO; pydantic-ai uses it underneath
                "httpx": {"level": "WARNING"},
            },
        }


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger under the continuum hierarchy."""
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name.startswith(ROOT_LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
