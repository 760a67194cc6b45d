"""Celery task that sends the post-call follow-up text."""

from __future__ import annotations

import asyncio
from uuid import UUID

from continuum.adapters.twilio_sms import TwilioSmsAdapter
from continuum.commands.outbound.post_call_followup_command import PostCallFollowupCommand
from continuum.db import db_session
from continuum.infra.celery_app import celery_app
from continuum.infra.logging_config import get_logger

logger = get_logger("followup")


@celery_app.task(name="continuum.tasks.followup_task.send_post_call_followup_task")
def send_post_call_followup_task(user_id_str: str, address: str) -> str | None:
    try:
        user_id = UUID(user_id_str)
    except ValueError:
        logger.warning("Invalid user_id for follow-up: %s", user_id_str)
        return None

    with db_session() as db:
        command = PostCallFollowupCommand(db, TwilioSmsAdapter.from_settings())
        result = asyncio.run(command.execute(user_id, address))

    if not result.success:
        logger.warning("Follow-up to user %s was not sent", user_id)
        return None
    return result.platform_message_id
