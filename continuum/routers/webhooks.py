"""
Webhook routes for the messaging gateway and the voice agent.

Providers retry anything that is not a 200, so every route acknowledges with
200 and reports problems in the body (or, for SMS, with a fallback reply).
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from continuum.commands.webhooks.sms_command import SmsWebhookCommand
from continuum.commands.webhooks.voice_personalize_command import VoicePersonalizeCommand
from continuum.commands.webhooks.voice_post_call_command import VoicePostCallCommand
from continuum.core.background import BackgroundTaskCoordinator
from continuum.db import get_db
from continuum.routers.utils.dependencies import (
    get_coordinator,
    get_intent_extractor,
    get_promotion_catalog,
    get_reply_runner,
    get_text_generator,
)
from continuum.schemas.voice import PersonalizeResponse
from continuum.services.promotion_service import PromotionCatalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

TWIML_MEDIA_TYPE = "text/xml"


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as e:
        logger.warning("Webhook body is not JSON: %s", e)
        return {}
    return body if isinstance(body, dict) else {}


@router.post("/twilio/sms")
async def twilio_sms_webhook(
    request: Request,
    db: Session = Depends(get_db),
    coordinator: BackgroundTaskCoordinator = Depends(get_coordinator),
    catalog: PromotionCatalog = Depends(get_promotion_catalog),
    reply_runner=Depends(get_reply_runner),
    text_generator=Depends(get_text_generator),
    intent_extractor=Depends(get_intent_extractor),
) -> Response:
    """Receive an inbound SMS / WhatsApp message and reply with TwiML."""
    form = await request.form()
    command = SmsWebhookCommand(
        db,
        coordinator=coordinator,
        catalog=catalog,
        reply_runner=reply_runner,
        text_generator=text_generator,
        intent_extractor=intent_extractor,
    )
    twiml = await command.execute(dict(form))
    return Response(content=twiml, media_type=TWIML_MEDIA_TYPE)


@router.post("/elevenlabs/personalize", response_model=PersonalizeResponse)
async def elevenlabs_personalize_webhook(
    request: Request,
    db: Session = Depends(get_db),
) -> PersonalizeResponse:
    """Return dynamic variables for a starting call."""
    payload = await _json_body(request)
    return await VoicePersonalizeCommand(db).execute(payload)


@router.post("/elevenlabs/post-call")
async def elevenlabs_post_call_webhook(
    request: Request,
    db: Session = Depends(get_db),
    coordinator: BackgroundTaskCoordinator = Depends(get_coordinator),
    text_generator=Depends(get_text_generator),
) -> dict[str, bool]:
    """Index a completed call and schedule its follow-up work."""
    payload = await _json_body(request)
    command = VoicePostCallCommand(
        db, coordinator=coordinator, text_generator=text_generator
    )
    return await command.execute(payload)
