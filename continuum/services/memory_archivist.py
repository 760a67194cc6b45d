"""
Long-term memory maintenance.

The memory text is an append-only log of tagged lines. Generation output is never
trusted: merge_memory accepts a candidate only when it reproduces every existing
line verbatim and in order, and only the lines after that prefix are appended.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from continuum.config import get_settings
from continuum.exceptions import GenerationUnavailable
from continuum.prompts.memory import ARCHIVER_INSTRUCTIONS, build_archiver_prompt
from continuum.schemas.messages import Channel
from continuum.services.user_service import UserService

logger = logging.getLogger(__name__)

CHANNEL_TAGS = {Channel.SMS: "SMS", Channel.CALL: "VOICE"}

_TAGGED_LINE = re.compile(r"^\[(SMS|VOICE)\]", re.IGNORECASE)
_BULLET = re.compile(r"^(?:[-*•]\s+|\d+[.)]\s+)")


class TextGenerator(Protocol):
    async def generate(self, prompt: str, instructions: Optional[str] = None) -> str: ...


def _lines(text: str) -> list[str]:
    return [line.rstrip() for line in (text or "").splitlines() if line.strip()]


def _clean_candidate(candidate: str) -> list[str]:
    # Models sometimes fence their answer
    return [line for line in _lines(candidate) if not line.strip().startswith("```")]


def _untagged(line: str) -> str:
    return _TAGGED_LINE.sub("", line.strip(), count=1).strip()


def tag_line(line: str, channel_tag: str) -> str:
    """Tag a new line with the channel of the turn it came from, replacing any tag the model wrote."""
    body = _untagged(_BULLET.sub("", line.strip()))
    return f"[{channel_tag}] {body}" if body else ""


def merge_memory(old: str, candidate: str, channel_tag: str) -> Optional[str]:
    """
    Return the memory text to persist, or None when nothing should be written.

    None covers: empty candidate, a candidate that does not start with the old
    lines (rewrite, reorder or deletion), and a candidate with no new lines.
    """
    new_lines = _clean_candidate(candidate)
    if not new_lines:
        return None
    old_lines = _lines(old)
    if new_lines[: len(old_lines)] != old_lines:
        logger.warning(
            "Rejected memory candidate: existing lines were not preserved (old=%d, candidate=%d)",
            len(old_lines),
            len(new_lines),
        )
        return None

    # A fact already on file is a duplicate whichever channel it was tagged with
    seen = {_untagged(line) for line in old_lines}
    appended: list[str] = []
    for line in new_lines[len(old_lines):]:
        tagged = tag_line(line, channel_tag)
        if not tagged or _untagged(tagged) in seen:
            continue
        seen.add(_untagged(tagged))
        appended.append(tagged)
    if not appended:
        return None

    base = (old or "").rstrip()
    tail = "\n".join(appended)
    return f"{base}\n{tail}" if base else tail


class MemoryCadence:
    """When to run the archivist: every Nth user message on SMS, after every call."""

    def __init__(self, every_n_messages: Optional[int] = None) -> None:
        if every_n_messages is None:
            every_n_messages = get_settings().memory_update_every_n_messages
        self.every_n_messages = max(1, every_n_messages)

    def is_due(self, channel: Channel | str, user_message_count: int) -> bool:
        if Channel(channel) == Channel.CALL:
            return True
        return user_message_count > 0 and user_message_count % self.every_n_messages == 0


class MemoryArchivist:
    def __init__(
        self,
        db: Session,
        generator: TextGenerator,
        clock: Callable[[], datetime] | None = None,
        local_timezone: Optional[str] = None,
    ) -> None:
        self.db = db
        self.generator = generator
        self.user_service = UserService(db)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._tz = ZoneInfo(local_timezone or get_settings().local_timezone)

    async def update(
        self,
        user_id: UUID,
        user_text: str,
        agent_text: str,
        channel: Channel | str,
    ) -> bool:
        """
        Extend the user's memory with facts from one turn. Returns True when a
        write happened. Generation failures keep the stored memory as is.
        """
        channel_tag = CHANNEL_TAGS[Channel(channel)]
        old = self.user_service.get_memory_summary(user_id)
        prompt = build_archiver_prompt(
            old_memory=old,
            user_text=user_text,
            agent_text=agent_text,
            channel_tag=channel_tag,
            today=self._clock().astimezone(self._tz).date(),
        )
        try:
            candidate = await self.generator.generate(prompt, ARCHIVER_INSTRUCTIONS)
        except GenerationUnavailable as e:
            logger.warning("Memory generation unavailable for user %s: %s", user_id, e)
            return False

        merged = merge_memory(old, candidate, channel_tag)
        if merged is None:
            logger.debug("No memory change for user %s", user_id)
            return False
        self.user_service.set_memory_summary(user_id, merged)
        return True
