"""
Command to handle the voice agent's post-call webhook.

Primary path: resolve the caller, ingest the call once (call id as provider
event id) and index the transcript. A redelivered call that is
already ingested but missing from the index is indexed then, so a failed index
write is recovered by the provider's retry. Memory update, the transcript fetch
trigger, the introduction and the delayed follow-up text are background work.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractContextManager
from typing import Any, Callable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from continuum.adapters.base import BaseMessagingAdapter
from continuum.adapters.elevenlabs import ElevenLabsAdapter
from continuum.adapters.notifier import TranscriptNotifier
from continuum.adapters.twilio_sms import TwilioSmsAdapter
from continuum.commands.outbound.send_introduction_command import SendIntroductionCommand
from continuum.config import get_settings
from continuum.core.background import BackgroundTaskCoordinator
from continuum.db import db_session
from continuum.exceptions import AlreadyProcessed, MalformedUpstreamPayload
from continuum.schemas.messages import Channel, VoiceCallCompletion
from continuum.services.conversation_service import ConversationService
from continuum.services.error_log_service import ErrorLogService
from continuum.services.memory_archivist import MemoryArchivist, TextGenerator
from continuum.services.message_service import MessageService
from continuum.services.transcript_service import TranscriptService
from continuum.services.user_service import UserService

CALL_STARTED_TEXT = "(VOICE CALL INITIATED)"
CALL_SUMMARY_PREFIX = "(VOICE CALL TRANSCRIPT SUMMARY)\n"

FollowupScheduler = Callable[[UUID, str], Any]


def schedule_followup_task(user_id: UUID, address: str) -> Any:
    """Queue the delayed follow-up text on the Celery worker."""
    from continuum.tasks.followup_task import send_post_call_followup_task

    return send_post_call_followup_task.apply_async(
        args=[str(user_id), address],
        countdown=get_settings().post_call_followup_delay_seconds,
    )


class VoicePostCallCommand:
    def __init__(
        self,
        db: Session,
        coordinator: BackgroundTaskCoordinator,
        text_generator: TextGenerator,
        adapter: Optional[ElevenLabsAdapter] = None,
        messaging: Optional[BaseMessagingAdapter] = None,
        notifier: Optional[TranscriptNotifier] = None,
        followup_scheduler: FollowupScheduler = schedule_followup_task,
        session_factory: Callable[[], AbstractContextManager[Session]] = db_session,
    ) -> None:
        self.db = db
        self.coordinator = coordinator
        self.text_generator = text_generator
        self.adapter = adapter or ElevenLabsAdapter()
        self.messaging = messaging or TwilioSmsAdapter.from_settings()
        self.notifier = notifier or TranscriptNotifier()
        self.followup_scheduler = followup_scheduler
        self.session_factory = session_factory
        self.logger = logging.getLogger(__name__)

    async def execute(self, payload: dict[str, Any]) -> dict[str, bool]:
        try:
            call = self.adapter.parse_post_call(payload)
        except MalformedUpstreamPayload as e:
            self.logger.info("Ignoring post-call event: %s", e)
            return {"ok": True}

        user_id: Optional[UUID] = None
        conversation_id: Optional[UUID] = None
        try:
            user_id = UserService(self.db).resolve_user_id(call.raw_address)
            conversation_id = ConversationService(self.db).get_or_open(user_id, Channel.CALL)
            transcripts = TranscriptService(self.db)
            try:
                MessageService(self.db).ingest_inbound(
                    conversation_id,
                    Channel.CALL,
                    call.transcript_text,
                    call.provider.value,
                    call.call_id,
                )
            except AlreadyProcessed as e:
                # A delivery whose index write failed is finished by its redelivery
                if transcripts.is_indexed(user_id, call.call_id):
                    self.logger.info("Duplicate post-call event ignored: %s", e)
                    return {"ok": True}
                self.logger.info("Completing post-call event missing from the index: %s", e)
            if call.call_id:
                transcripts.upsert(
                    user_id,
                    call.call_id,
                    call.completed_at,
                    call.transcript_text,
                    call.upstream_summary,
                )
            else:
                self.logger.warning("Post-call event for user %s has no call id", user_id)
        except Exception as e:
            ErrorLogService(self.db).record(
                stage="elevenlabs_post_call",
                message=str(e) or e.__class__.__name__,
                channel=Channel.CALL.value,
                phone=call.address,
                user_id=user_id,
                conversation_id=conversation_id,
                details={"call_id": call.call_id},
            )
            return {"ok": False}

        self._schedule_followups(user_id, call)
        return {"ok": True}

    def _schedule_followups(self, user_id: UUID, call: VoiceCallCompletion) -> None:
        context = {"user_id": str(user_id), "call_id": call.call_id}
        self.coordinator.spawn(
            "memory_update", self._update_memory(user_id, call.transcript_text), **context
        )
        self.coordinator.spawn("transcript_fetch_trigger", self.notifier.request_fetch(), **context)
        self.coordinator.spawn(
            "introduction",
            SendIntroductionCommand(self.messaging, self.session_factory).execute(
                user_id, call.address
            ),
            **context,
        )
        if self.messaging.is_configured:
            self.coordinator.spawn(
                "followup_schedule",
                asyncio.to_thread(self.followup_scheduler, user_id, call.address),
                **context,
            )

    async def _update_memory(self, user_id: UUID, transcript_text: str) -> bool:
        with self.session_factory() as db:
            return await MemoryArchivist(db, self.text_generator).update(
                user_id,
                CALL_STARTED_TEXT,
                CALL_SUMMARY_PREFIX + transcript_text,
                Channel.CALL,
            )
