"""
Normalized message contracts.

Channel adapters convert provider payloads into these shapes; the engine never
sees Twilio or ElevenLabs field names.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class Channel(str, Enum):
    """Channel scopes. Each scope threads its own conversations."""

    SMS = "sms"
    CALL = "call"


class Provider(str, Enum):
    TWILIO = "twilio"
    ELEVENLABS = "elevenlabs"
    LLM = "llm"


class InboundMessage(BaseModel):
    """Normalized inbound text message (adapter → core)."""

    channel: Channel = Channel.SMS
    raw_address: str  # as received, e.g. "whatsapp:+15551234567"
    address: str  # canonical identifier
    text: str
    provider: Provider = Provider.TWILIO
    provider_event_id: Optional[str] = None
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class VoiceCallCompletion(BaseModel):
    """Normalized post-call event."""

    raw_address: str
    address: str
    transcript_text: str
    upstream_summary: Optional[str] = None
    call_id: Optional[str] = None
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    provider: Provider = Provider.ELEVENLABS


class CallStart(BaseModel):
    """Normalized call-start (personalization) request."""

    raw_address: str
    address: str


class OutboundMessage(BaseModel):
    """Normalized outbound message (core → adapter)."""

    channel: Channel = Channel.SMS
    to: str  # raw address; keeps the transport prefix for routing
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class OutboundSendResult(BaseModel):
    """Result of sending an outbound message (success + optional message_id)."""

    success: bool
    platform_message_id: Optional[str] = None


class HistoryEntry(BaseModel):
    """One prior turn, as fed to reply generation."""

    role: str  # 'user' | 'assistant'
    content: str
    channel: Channel

    @property
    def channel_label(self) -> str:
        return "CALL" if self.channel == Channel.CALL else "SMS"
