"""
ElevenLabs voice-agent payload parsing.

Payload shapes vary between agent versions, so every field is looked up under
several alternate names. Missing caller or transcript raises
MalformedUpstreamPayload; the caller acknowledges and stops.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from continuum.exceptions import MalformedUpstreamPayload
from continuum.schemas.messages import CallStart, VoiceCallCompletion
from continuum.services.user_service import normalize_address


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def extract_transcript(payload: dict[str, Any]) -> str:
    """Transcript text from the analysis summary, a list of turns, or a plain string."""
    data = _dict(payload.get("data")) or payload
    summary = _dict(data.get("analysis")).get("transcript_summary")
    if isinstance(summary, str) and summary.strip():
        return summary.strip()

    turns = _first(data.get("transcript"), data.get("messages"), data.get("turns"))
    if isinstance(turns, list):
        lines = []
        for turn in turns:
            turn = _dict(turn)
            role = str(turn.get("role") or turn.get("speaker") or "USER").upper()
            text = _first(turn.get("message"), turn.get("text"), turn.get("content"))
            if text:
                lines.append(f"{role}: {text}")
        return "\n".join(lines)
    if isinstance(turns, str):
        return turns.strip()
    return ""


def _completed_at(data: dict[str, Any]) -> datetime:
    metadata = _dict(data.get("metadata"))
    end = _to_float(metadata.get("end_time_unix_secs"))
    if end is None:
        start = _to_float(metadata.get("start_time_unix_secs"))
        duration = _to_float(metadata.get("call_duration_secs"))
        if start is not None:
            end = start + (duration or 0)
    if end is None:
        return datetime.now(timezone.utc)
    return datetime.fromtimestamp(end, tz=timezone.utc)


class ElevenLabsAdapter:
    def parse_call_start(self, payload: dict[str, Any]) -> CallStart:
        raw = _first(
            payload.get("from"),
            payload.get("From"),
            payload.get("callerId"),
            payload.get("caller_id"),
            _dict(payload.get("call")).get("from"),
        )
        raw = str(raw or "").strip()
        address = normalize_address(raw)
        if not address:
            raise MalformedUpstreamPayload("personalize request without caller")
        return CallStart(raw_address=raw, address=address)

    def parse_post_call(self, payload: dict[str, Any]) -> VoiceCallCompletion:
        data = _dict(payload.get("data"))
        raw = _first(
            _dict(data.get("metadata")).get("caller_id"),
            data.get("user_id"),
            payload.get("caller_id"),
            payload.get("callerId"),
            payload.get("from"),
            payload.get("From"),
        )
        raw = str(raw or "").strip()
        address = normalize_address(raw)
        transcript = extract_transcript(payload)
        if not address or not transcript:
            raise MalformedUpstreamPayload("post-call event without caller or transcript")

        summary = _dict(data.get("analysis")).get("transcript_summary")
        call_id = _first(data.get("conversation_id"), payload.get("conversation_id"))
        return VoiceCallCompletion(
            raw_address=raw,
            address=address,
            transcript_text=transcript,
            upstream_summary=summary if isinstance(summary, str) and summary.strip() else None,
            call_id=str(call_id) if call_id is not None else None,
            completed_at=_completed_at(data),
        )
