"""
Messaging adapter interface.

Adapters encapsulate provider-specific parsing and delivery and expose the
normalized shapes in continuum.schemas.messages to the rest of the engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from continuum.schemas.messages import InboundMessage, OutboundMessage, OutboundSendResult


class BaseMessagingAdapter(ABC):
    """Contract for text-messaging providers."""

    @abstractmethod
    def parse_webhook(self, raw_payload: dict[str, Any]) -> InboundMessage:
        """Parse a raw webhook payload. Raise MalformedUpstreamPayload if unusable."""
        ...

    @abstractmethod
    async def send(self, outbound: OutboundMessage) -> OutboundSendResult:
        """Deliver an outbound message. Return success and the provider message id."""
        ...

    @property
    def is_configured(self) -> bool:
        """Whether outbound delivery has credentials. Parsing works regardless."""
        return True
