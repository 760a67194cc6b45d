"""
Promotion frequency capping and the shared snapshot of promotable items.

Counters live on the user row (promotion_counts). They are only incremented for
items a sent reply actually mentioned, and never past the cap.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractContextManager
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from continuum.config import get_settings
from continuum.db import db_session
from continuum.exceptions import StoreUnavailable
from continuum.models.promotable_item import PromotableItem
from continuum.models.user import User
from continuum.schemas.promotion import PromotableItemSnapshot

logger = logging.getLogger(__name__)


def _counts(user: User) -> Dict[str, int]:
    raw = user.promotion_counts if isinstance(user.promotion_counts, dict) else {}
    counts: Dict[str, int] = {}
    for key, value in raw.items():
        try:
            counts[str(key)] = int(value)
        except (TypeError, ValueError):
            continue
    return counts


class PromotionCapper:
    def __init__(self, db: Session, cap: Optional[int] = None) -> None:
        self.db = db
        self.cap = cap if cap is not None else get_settings().promotion_cap

    def _get_user(self, user_id: UUID, for_update: bool = False) -> Optional[User]:
        try:
            query = self.db.query(User).filter(User.id == user_id)
            if for_update:
                query = query.with_for_update()
            return query.first()
        except SQLAlchemyError as e:
            raise StoreUnavailable("users promotion read", e) from e

    def get_counts(self, user_id: UUID) -> Dict[str, int]:
        user = self._get_user(user_id)
        return _counts(user) if user is not None else {}

    def is_eligible(self, user_id: UUID, item_id: str) -> bool:
        return self.get_counts(user_id).get(item_id, 0) < self.cap

    def filter_eligible(
        self, user_id: UUID, items: Sequence[PromotableItemSnapshot]
    ) -> List[PromotableItemSnapshot]:
        """Items still under the cap for this user. Read-only."""
        counts = self.get_counts(user_id)
        return [item for item in items if counts.get(item.id, 0) < self.cap]

    def record_sent(self, user_id: UUID, item_id: str) -> int:
        """Count one confirmed send of item_id. Returns the stored count."""
        user = self._get_user(user_id, for_update=True)
        if user is None:
            raise StoreUnavailable(f"users promotion update ({user_id} not found)")
        counts = _counts(user)
        current = counts.get(item_id, 0)
        if current >= self.cap:
            self.db.rollback()
            logger.warning(
                "Promotion %s already at cap for user %s (%d)", item_id, user_id, current
            )
            return current
        counts[item_id] = current + 1
        try:
            user.promotion_counts = counts
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("users promotion update", e) from e
        return counts[item_id]

    def record_mentions(
        self,
        user_id: UUID,
        sent_text: str,
        offered: Sequence[PromotableItemSnapshot],
    ) -> List[str]:
        """Increment every offered item the delivered text mentions."""
        recorded = []
        for item in offered:
            if item.mentioned_in(sent_text):
                self.record_sent(user_id, item.id)
                recorded.append(item.id)
        return recorded


class PromotionCatalog:
    """
    Read-only snapshot of upcoming promotable items.

    Request handling only reads `snapshot`; the refresh loop replaces the whole
    tuple on each tick.
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractContextManager[Session]] = db_session,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._snapshot: Tuple[PromotableItemSnapshot, ...] = ()
        self.refreshed_at: Optional[datetime] = None

    @property
    def snapshot(self) -> Tuple[PromotableItemSnapshot, ...]:
        return self._snapshot

    def refresh(self) -> Tuple[PromotableItemSnapshot, ...]:
        now = self._clock()
        with self._session_factory() as db:
            rows = (
                db.query(PromotableItem)
                .filter(
                    PromotableItem.active.is_(True),
                    or_(PromotableItem.starts_at.is_(None), PromotableItem.starts_at >= now),
                )
                .order_by(PromotableItem.starts_at.asc())
                .all()
            )
            snapshot = tuple(PromotableItemSnapshot.model_validate(row) for row in rows)
        self._snapshot = snapshot
        self.refreshed_at = now
        logger.debug("Promotion catalog refreshed: %d items", len(snapshot))
        return snapshot

    async def run_refresh_loop(self, interval_seconds: Optional[float] = None) -> None:
        interval = interval_seconds or get_settings().promotion_refresh_seconds
        while True:
            try:
                await asyncio.to_thread(self.refresh)
            except Exception:
                logger.exception("Promotion catalog refresh failed")
            await asyncio.sleep(interval)
