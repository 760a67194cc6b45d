"""Persisted error log for primary-path failures."""

from __future__ import annotations

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from continuum.models.error_log import ErrorLog

logger = logging.getLogger(__name__)


class ErrorLogService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        stage: str,
        message: str,
        channel: str = "unknown",
        phone: Optional[str] = None,
        user_id: Optional[UUID] = None,
        conversation_id: Optional[UUID] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> Optional[ErrorLog]:
        """
        Write one error row. Used from failure paths, so a failed write is only
        logged and None is returned.
        """
        logger.error(
            "[%s] %s (channel=%s phone=%s user_id=%s)",
            stage,
            message,
            channel,
            phone,
            user_id,
        )
        entry = ErrorLog(
            phone=phone,
            user_id=user_id,
            conversation_id=conversation_id,
            channel=channel,
            stage=stage,
            message=(message or "unknown")[:4000],
            details=details,
        )
        try:
            # The session may be mid-failure
            self.db.rollback()
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Could not persist error log for stage %s: %s", stage, e)
            return None
        return entry

    def list_recent(self, limit: int = 50) -> list[ErrorLog]:
        return (
            self.db.query(ErrorLog)
            .order_by(ErrorLog.created_at.desc())
            .limit(limit)
            .all()
        )
