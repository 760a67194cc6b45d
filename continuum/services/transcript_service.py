"""
Per-user index of completed voice calls and resolution of references to them.

Stored records may predate the current shape (bare call id strings, objects with
other id/time keys). Every read goes through normalize_entries first, and every
write persists the normalized form.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone, tzinfo
from typing import Any, Iterable, List, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from continuum.config import get_settings
from continuum.exceptions import StoreUnavailable
from continuum.models.user import User
from continuum.schemas.transcript import (
    LEGACY_SUMMARY,
    RankedTranscript,
    TranscriptRecord,
    TranscriptReference,
)

logger = logging.getLogger(__name__)

OLDEST = float("-inf")
PREVIEW_LENGTH = 150

ID_KEYS = ("external_call_id", "id", "call_id", "conversation_id")
TIME_KEYS = ("timestamp", "completed_at", "created_at", "time", "date")
LOCALE_FORMATS = ("%m/%d/%Y, %I:%M:%S %p", "%m/%d/%Y %I:%M:%S %p", "%m/%d/%Y")

_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")
_WORD = re.compile(r"[a-z0-9]+")
_STOPWORDS = frozenset(
    "the a an one about call calls that this with for and from on of to my our we "
    "was were where when talked discussed regarding".split()
)


def _from_epoch(value: float) -> float:
    # Millisecond epochs are 13 digits for any date after 2001
    return value / 1000.0 if abs(value) > 1e12 else float(value)


def _aware(value: datetime, naive_tz: tzinfo) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=naive_tz)


def _representable(instant: float) -> float:
    """Instants outside the datetime range are unreadable."""
    if not math.isfinite(instant):
        return OLDEST
    try:
        datetime.fromtimestamp(instant, timezone.utc)
    except (OverflowError, ValueError, OSError):
        return OLDEST
    return instant


def _read_instant(value: Any, local_tz: tzinfo) -> float:
    if value is None or isinstance(value, bool):
        return OLDEST
    if isinstance(value, datetime):
        return _aware(value, timezone.utc).timestamp()
    if isinstance(value, (int, float)):
        return _from_epoch(float(value))
    if not isinstance(value, str):
        return OLDEST
    text = value.strip()
    if not text:
        return OLDEST
    if _NUMERIC.match(text):
        return _from_epoch(float(text))
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00").replace("z", "+00:00"))
        return _aware(parsed, local_tz).timestamp()
    except (ValueError, OverflowError):
        pass
    for fmt in LOCALE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=local_tz).timestamp()
        except (ValueError, OverflowError):
            continue
    return OLDEST


def parse_instant(value: Any, local_tz: tzinfo = timezone.utc) -> float:
    """
    Epoch seconds for a stored call time, or -inf when it cannot be read.

    datetime objects without a zone are UTC. Strings without an offset
    (date-only, naive ISO, "M/D/YYYY, h:mm:ss AM") are local time.
    """
    try:
        instant = _read_instant(value, local_tz)
    except OverflowError:
        return OLDEST
    return _representable(instant)


def _first_present(entry: dict, keys: Iterable[str]) -> Any:
    for key in keys:
        value = entry.get(key)
        if value is not None and value != "":
            return value
    return None


def normalize_entries(raw: Any) -> List[TranscriptRecord]:
    """Map every stored shape to TranscriptRecord, keeping the first record per call id."""
    if not isinstance(raw, list):
        return []
    records: List[TranscriptRecord] = []
    seen: set[str] = set()
    for entry in raw:
        if isinstance(entry, str):
            call_id = entry.strip()
            record = TranscriptRecord(external_call_id=call_id) if call_id else None
        elif isinstance(entry, dict):
            call_id = _first_present(entry, ID_KEYS)
            if call_id is None:
                logger.debug("Dropping transcript entry without an id: %r", entry)
                continue
            call_id = str(call_id).strip()
            summary = entry.get("summary")
            record = TranscriptRecord(
                external_call_id=call_id,
                timestamp=_first_present(entry, TIME_KEYS),
                summary=str(summary).strip() if summary else LEGACY_SUMMARY,
            )
        else:
            record = None
        if record is None or record.external_call_id in seen:
            continue
        seen.add(record.external_call_id)
        records.append(record)
    return records


def rank(
    records: List[TranscriptRecord], local_tz: tzinfo = timezone.utc
) -> List[RankedTranscript]:
    """Newest first; ties keep insertion order; unreadable times sort last."""
    keyed = [
        (parse_instant(record.timestamp, local_tz), index, record)
        for index, record in enumerate(records)
    ]
    keyed.sort(key=lambda item: (-item[0], item[1]))
    return [
        RankedTranscript(position=position, instant=instant, record=record)
        for position, (instant, _, record) in enumerate(keyed, start=1)
    ]


def derive_summary(transcript_text: str, upstream_summary: Optional[str] = None) -> str:
    if upstream_summary and upstream_summary.strip():
        return upstream_summary.strip()
    flat = (transcript_text or "").replace("\n", " ").strip()
    if not flat:
        return LEGACY_SUMMARY
    if len(flat) <= PREVIEW_LENGTH:
        return flat
    return flat[:PREVIEW_LENGTH] + "..."


def _topic_words(text: str) -> set[str]:
    return {
        word
        for word in _WORD.findall((text or "").lower())
        if len(word) > 2 and word not in _STOPWORDS
    }


def resolve_reference(
    ranked: List[RankedTranscript],
    reference: TranscriptReference,
    local_tz: tzinfo,
) -> Optional[RankedTranscript]:
    """
    Pick the call a reference points at.

    Precedence: calendar date, then "N calls back", then topic. An empty
    reference means the most recent call. Returns None when nothing qualifies.
    """
    if not ranked:
        return None
    if reference.on_date is not None:
        for item in ranked:
            if not item.has_valid_time:
                continue
            try:
                local_date = datetime.fromtimestamp(item.instant, tz=local_tz).date()
            except (OverflowError, ValueError, OSError):
                continue
            if local_date == reference.on_date:
                return item
        return None
    if reference.calls_back is not None:
        if reference.calls_back > len(ranked):
            return None
        return ranked[reference.calls_back - 1]
    if reference.topic:
        wanted = _topic_words(reference.topic)
        best: Optional[RankedTranscript] = None
        best_score = 0
        for item in ranked:
            score = len(wanted & _topic_words(item.record.summary))
            if score > best_score:
                best, best_score = item, score
        return best
    return ranked[0]


class TranscriptService:
    def __init__(self, db: Session, local_timezone: Optional[str] = None) -> None:
        self.db = db
        self.local_tz = ZoneInfo(local_timezone or get_settings().local_timezone)

    def _load_user(self, user_id: UUID, for_update: bool = False) -> User:
        try:
            query = self.db.query(User).filter(User.id == user_id)
            if for_update:
                query = query.with_for_update()
            user = query.first()
        except SQLAlchemyError as e:
            raise StoreUnavailable("users transcript read", e) from e
        if user is None:
            raise StoreUnavailable(f"users transcript read ({user_id} not found)")
        return user

    def get_records(self, user_id: UUID) -> List[TranscriptRecord]:
        return normalize_entries(self._load_user(user_id).transcript_index)

    def is_indexed(self, user_id: UUID, external_call_id: Optional[str]) -> bool:
        return any(r.external_call_id == external_call_id for r in self.get_records(user_id))

    def ranked(self, user_id: UUID) -> List[RankedTranscript]:
        return rank(self.get_records(user_id), self.local_tz)

    def upsert(
        self,
        user_id: UUID,
        external_call_id: str,
        completed_at: datetime,
        transcript_text: str,
        upstream_summary: Optional[str] = None,
    ) -> TranscriptRecord:
        """
        Add one completed call to the index. A call id already present is left
        untouched; the index is rewritten in normalized form either way.
        """
        call_id = (external_call_id or "").strip()
        if not call_id:
            raise ValueError("external_call_id is required")
        user = self._load_user(user_id, for_update=True)
        records = normalize_entries(user.transcript_index)
        existing = next((r for r in records if r.external_call_id == call_id), None)
        if existing is not None:
            logger.info("Transcript %s already indexed for user %s", call_id, user_id)
            record = existing
        else:
            record = TranscriptRecord(
                external_call_id=call_id,
                timestamp=_aware(completed_at, timezone.utc)
                .astimezone(timezone.utc)
                .isoformat(),
                summary=derive_summary(transcript_text, upstream_summary),
            )
            records.append(record)
        try:
            user.transcript_index = [r.to_storage() for r in records]
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("users transcript upsert", e) from e
        return record

    def resolve(
        self, user_id: UUID, reference: TranscriptReference
    ) -> Optional[RankedTranscript]:
        return resolve_reference(self.ranked(user_id), reference, self.local_tz)
