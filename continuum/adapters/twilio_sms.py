"""
Twilio messaging adapter (SMS and WhatsApp).

Inbound webhooks are form posts (From, Body, MessageSid); synchronous replies
are TwiML. Outbound sends go through the REST client on a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client
from twilio.twiml.messaging_response import MessagingResponse

from continuum.adapters.base import BaseMessagingAdapter
from continuum.config import get_settings
from continuum.exceptions import MalformedUpstreamPayload
from continuum.schemas.messages import (
    Channel,
    InboundMessage,
    OutboundMessage,
    OutboundSendResult,
    Provider,
)
from continuum.services.user_service import normalize_address

logger = logging.getLogger(__name__)

WHATSAPP_PREFIX = "whatsapp:"


def twiml_reply(text: Optional[str] = None) -> str:
    """TwiML document; no text yields an empty <Response/>."""
    response = MessagingResponse()
    if text:
        response.message(text)
    return str(response)


def is_whatsapp(raw_address: str) -> bool:
    return (raw_address or "").strip().lower().startswith(WHATSAPP_PREFIX)


class TwilioSmsAdapter(BaseMessagingAdapter):
    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        client: Optional[Client] = None,
    ) -> None:
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._client = client

    @classmethod
    def from_settings(cls) -> "TwilioSmsAdapter":
        settings = get_settings()
        return cls(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_phone_number,
        )

    @property
    def is_configured(self) -> bool:
        if not self._from_number:
            return False
        return self._client is not None or bool(self._account_sid and self._auth_token)

    def _get_client(self) -> Client:
        if self._client is None:
            self._client = Client(self._account_sid, self._auth_token)
        return self._client

    def parse_webhook(self, raw_payload: dict[str, Any]) -> InboundMessage:
        raw_from = str(raw_payload.get("From") or "").strip()
        address = normalize_address(raw_from)
        body = str(raw_payload.get("Body") or "").strip()
        if not address or not body:
            raise MalformedUpstreamPayload("Twilio webhook without sender or body")
        sid = str(raw_payload.get("MessageSid") or "").strip() or None
        return InboundMessage(
            channel=Channel.SMS,
            raw_address=raw_from,
            address=address,
            text=body,
            provider=Provider.TWILIO,
            provider_event_id=sid,
        )

    def sender_for(self, to: str) -> str:
        """The from-address matching the recipient's transport."""
        if is_whatsapp(to):
            return f"{WHATSAPP_PREFIX}{self._from_number}"
        return self._from_number or ""

    async def send(self, outbound: OutboundMessage) -> OutboundSendResult:
        if not self.is_configured:
            logger.warning("Twilio is not configured; dropping message to %s", outbound.to)
            return OutboundSendResult(success=False)
        to = outbound.to.strip()
        if not is_whatsapp(to) and not to.startswith("+"):
            to = f"+{to}"
        client = self._get_client()
        try:
            message = await asyncio.to_thread(
                client.messages.create,
                body=outbound.text,
                from_=self.sender_for(to),
                to=to,
            )
        except TwilioException as e:
            logger.error("Twilio send to %s failed: %s", to, e)
            return OutboundSendResult(success=False)
        logger.info("Twilio accepted message %s to %s", message.sid, to)
        return OutboundSendResult(success=True, platform_message_id=message.sid)
