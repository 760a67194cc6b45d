"""User lookup-or-create keyed by canonical phone address, plus profile writes."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from continuum.exceptions import StoreUnavailable
from continuum.models.user import User

logger = logging.getLogger(__name__)

OVERLAY_PREFIXES = ("whatsapp:",)


def normalize_address(raw: Optional[str]) -> str:
    """
    Canonical identifier for a channel address.

    Strips transport markers ("whatsapp:+1555..." → "+1555...") and whitespace.
    """
    value = str(raw or "").strip()
    lowered = value.lower()
    for prefix in OVERLAY_PREFIXES:
        if lowered.startswith(prefix):
            value = value[len(prefix):]
            break
    return value.strip()


class UserService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_user(self, user_id: UUID) -> Optional[User]:
        try:
            return self.db.query(User).filter(User.id == user_id).first()
        except SQLAlchemyError as e:
            raise StoreUnavailable("users read", e) from e

    def get_by_phone(self, phone: str) -> Optional[User]:
        try:
            return self.db.query(User).filter(User.phone == phone).first()
        except SQLAlchemyError as e:
            raise StoreUnavailable("users read", e) from e

    def resolve_user_id(self, raw_address: str) -> UUID:
        """
        Map a raw channel address to a durable user id, creating the user if absent.

        A concurrent insert for the same phone loses on the unique constraint; the
        loser re-reads the winner's row instead of failing.
        """
        phone = normalize_address(raw_address)
        if not phone:
            raise ValueError("cannot resolve an empty address")
        existing = self.get_by_phone(phone)
        if existing is not None:
            return existing.id
        user = User(phone=phone)
        try:
            self.db.add(user)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            winner = self.get_by_phone(phone)
            if winner is None:
                raise StoreUnavailable("users insert")
            return winner.id
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("users insert", e) from e
        self.db.refresh(user)
        logger.info("Created user %s for %s", user.id, phone)
        return user.id

    def get_memory_summary(self, user_id: UUID) -> str:
        user = self.get_user(user_id)
        if user is None:
            raise StoreUnavailable(f"users memory read ({user_id} not found)")
        return (user.memory_summary or "").strip()

    def set_memory_summary(self, user_id: UUID, memory_summary: str) -> None:
        """Persist memory text together with last-seen."""
        try:
            updated = (
                self.db.query(User)
                .filter(User.id == user_id)
                .update(
                    {
                        User.memory_summary: memory_summary,
                        User.last_seen_at: datetime.now(timezone.utc),
                    },
                    synchronize_session="fetch",
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("users memory update", e) from e
        if not updated:
            raise StoreUnavailable(f"users memory update ({user_id} not found)")
        logger.info(
            "User memory updated user_id=%s memory_len=%d", user_id, len(memory_summary)
        )

    def fill_profile(
        self,
        user_id: UUID,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> dict[str, str]:
        """Set name/email only where currently unknown. Returns what was written."""
        user = self.get_user(user_id)
        if user is None:
            return {}
        updates: dict[str, str] = {}
        if full_name and not user.full_name:
            updates["full_name"] = full_name.strip()
        if email and "@" in email and not user.email:
            updates["email"] = email.strip()
        if not updates:
            return updates
        try:
            for key, value in updates.items():
                setattr(user, key, value)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("users profile update", e) from e
        return updates

    def mark_intro_sent(self, user_id: UUID) -> None:
        try:
            self.db.query(User).filter(User.id == user_id).update(
                {User.intro_sent: True}, synchronize_session="fetch"
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("users intro flag update", e) from e
