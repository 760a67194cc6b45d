"""Tests for TwilioSmsAdapter."""

from unittest.mock import MagicMock

import pytest
from twilio.base.exceptions import TwilioRestException

from continuum.adapters.twilio_sms import TwilioSmsAdapter, twiml_reply
from continuum.exceptions import MalformedUpstreamPayload
from continuum.schemas.messages import Channel, OutboundMessage, Provider


def _client(sid="SM123"):
    client = MagicMock()
    client.messages.create.return_value = MagicMock(sid=sid)
    return client


def test_parse_webhook_normalizes_whatsapp_sender():
    adapter = TwilioSmsAdapter()
    inbound = adapter.parse_webhook(
        {"From": "whatsapp:+15551234567", "Body": "  hi  ", "MessageSid": "SMabc"}
    )
    assert inbound.channel == Channel.SMS
    assert inbound.raw_address == "whatsapp:+15551234567"
    assert inbound.address == "+15551234567"
    assert inbound.text == "hi"
    assert inbound.provider == Provider.TWILIO
    assert inbound.provider_event_id == "SMabc"


def test_parse_webhook_without_sid_has_no_event_id():
    inbound = TwilioSmsAdapter().parse_webhook({"From": "+15551234567", "Body": "hi"})
    assert inbound.provider_event_id is None


@pytest.mark.parametrize(
    "form", [{}, {"From": "+15551234567"}, {"Body": "hi"}, {"From": " ", "Body": "hi"}]
)
def test_parse_webhook_malformed(form):
    with pytest.raises(MalformedUpstreamPayload):
        TwilioSmsAdapter().parse_webhook(form)


def test_twiml_reply():
    assert "<Message>Hello &amp; welcome</Message>" in twiml_reply("Hello & welcome")
    empty = twiml_reply()
    assert "<Response" in empty
    assert "<Message>" not in empty


async def test_send_sms_adds_plus_and_uses_plain_sender():
    client = _client()
    adapter = TwilioSmsAdapter(from_number="+15550001111", client=client)
    result = await adapter.send(OutboundMessage(to="15551234567", text="hello"))
    assert result.success is True
    assert result.platform_message_id == "SM123"
    client.messages.create.assert_called_once_with(
        body="hello", from_="+15550001111", to="+15551234567"
    )


async def test_send_whatsapp_uses_whatsapp_sender():
    client = _client()
    adapter = TwilioSmsAdapter(from_number="+15550001111", client=client)
    await adapter.send(OutboundMessage(to="whatsapp:+15551234567", text="hello"))
    client.messages.create.assert_called_once_with(
        body="hello", from_="whatsapp:+15550001111", to="whatsapp:+15551234567"
    )


async def test_send_failure_returns_unsuccessful_result():
    client = MagicMock()
    client.messages.create.side_effect = TwilioRestException(400, "uri", "bad number")
    adapter = TwilioSmsAdapter(from_number="+15550001111", client=client)
    result = await adapter.send(OutboundMessage(to="+15551234567", text="hello"))
    assert result.success is False


async def test_send_unconfigured_is_a_no_op():
    adapter = TwilioSmsAdapter()
    assert adapter.is_configured is False
    result = await adapter.send(OutboundMessage(to="+15551234567", text="hello"))
    assert result.success is False
