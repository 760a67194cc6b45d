"""
Command to handle an inbound SMS / WhatsApp webhook from Twilio.

Primary path: resolve the user, thread the message, ingest it exactly once,
generate and persist the reply, return TwiML. Everything else (introduction,
promotion counters, transcript requests, memory) is spawned on the background
coordinator after the reply exists and never changes the response.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Any, Callable, Optional, Protocol, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from continuum.adapters.knowledge_base import KnowledgeBaseSearch
from continuum.adapters.notifier import TranscriptNotifier
from continuum.adapters.twilio_sms import TwilioSmsAdapter, twiml_reply
from continuum.commands.outbound.send_introduction_command import SendIntroductionCommand
from continuum.commands.transcript_request_command import (
    IntentSource,
    TranscriptRequestCommand,
)
from continuum.config import get_settings
from continuum.core.background import BackgroundTaskCoordinator
from continuum.db import db_session
from continuum.exceptions import AlreadyProcessed, MalformedUpstreamPayload
from continuum.prompts.system_prompt import FALLBACK_REPLY
from continuum.schemas.messages import Channel, HistoryEntry, InboundMessage, Provider
from continuum.schemas.promotion import PromotableItemSnapshot
from continuum.services.bot_config_service import BotConfigService
from continuum.services.conversation_service import ConversationService
from continuum.services.error_log_service import ErrorLogService
from continuum.services.memory_archivist import MemoryArchivist, MemoryCadence, TextGenerator
from continuum.services.message_service import MessageService
from continuum.services.promotion_service import PromotionCapper, PromotionCatalog
from continuum.services.user_service import UserService
from continuum.workers.llm import compose_system_prompt

ACK_TEXT = "ok"


class ReplyComposer(Protocol):
    async def run(
        self, text: str, system_prompt: str, history: Optional[Sequence[HistoryEntry]] = None
    ) -> str: ...


class SmsWebhookCommand:
    def __init__(
        self,
        db: Session,
        coordinator: BackgroundTaskCoordinator,
        catalog: PromotionCatalog,
        reply_runner: ReplyComposer,
        text_generator: TextGenerator,
        intent_extractor: IntentSource,
        adapter: Optional[TwilioSmsAdapter] = None,
        knowledge_base: Optional[KnowledgeBaseSearch] = None,
        notifier: Optional[TranscriptNotifier] = None,
        session_factory: Callable[[], AbstractContextManager[Session]] = db_session,
        cadence: Optional[MemoryCadence] = None,
    ) -> None:
        self.db = db
        self.settings = get_settings()
        self.coordinator = coordinator
        self.catalog = catalog
        self.reply_runner = reply_runner
        self.text_generator = text_generator
        self.intent_extractor = intent_extractor
        self.adapter = adapter or TwilioSmsAdapter.from_settings()
        self.knowledge_base = knowledge_base or KnowledgeBaseSearch()
        self.notifier = notifier or TranscriptNotifier()
        self.session_factory = session_factory
        self.cadence = cadence or MemoryCadence()
        self.logger = logging.getLogger(__name__)

    async def execute(self, form: dict[str, Any]) -> str:
        """
        Handle one Twilio webhook and return the TwiML body.

        Malformed events are acknowledged with "ok", duplicates with an empty
        response, and any primary-path failure with the fallback reply.
        """
        try:
            inbound = self.adapter.parse_webhook(form)
        except MalformedUpstreamPayload as e:
            self.logger.info("Ignoring SMS webhook: %s", e)
            return twiml_reply(ACK_TEXT)

        self.logger.info("SMS from %s (sid=%s)", inbound.address, inbound.provider_event_id)
        user_id: Optional[UUID] = None
        conversation_id: Optional[UUID] = None
        try:
            user_id = UserService(self.db).resolve_user_id(inbound.raw_address)
            conversation_id = ConversationService(self.db).get_or_open(user_id, Channel.SMS)
            messages = MessageService(self.db)
            messages.ingest_inbound(
                conversation_id,
                Channel.SMS,
                inbound.text,
                inbound.provider.value,
                inbound.provider_event_id,
            )
            self.coordinator.spawn(
                "introduction",
                SendIntroductionCommand(self.adapter, self.session_factory).execute(
                    user_id, inbound.raw_address
                ),
                user_id=str(user_id),
            )

            offered = PromotionCapper(self.db).filter_eligible(user_id, self.catalog.snapshot)
            reply = await self._generate_reply(user_id, inbound, offered)
            messages.record_agent_message(
                conversation_id, Channel.SMS, reply, Provider.LLM.value
            )
            user_message_count = messages.count_user_messages(conversation_id)
        except AlreadyProcessed as e:
            self.logger.info("Duplicate SMS ignored: %s", e)
            return twiml_reply()
        except Exception as e:
            ErrorLogService(self.db).record(
                stage="twilio_sms_webhook",
                message=str(e) or e.__class__.__name__,
                channel=Channel.SMS.value,
                phone=inbound.address,
                user_id=user_id,
                conversation_id=conversation_id,
                details={"body": inbound.text, "error_type": e.__class__.__name__},
            )
            return twiml_reply(FALLBACK_REPLY)

        self._schedule_followups(user_id, inbound, reply, offered, user_message_count)
        return twiml_reply(reply)

    async def _generate_reply(
        self,
        user_id: UUID,
        inbound: InboundMessage,
        offered: Sequence[PromotableItemSnapshot],
    ) -> str:
        users = UserService(self.db)
        user = users.get_user(user_id)
        history = MessageService(self.db).get_recent_history(
            ConversationService(self.db).list_ids_for_user(user_id),
            limit=self.settings.history_limit,
        )
        # The turn being answered is already stored and goes in as the prompt
        if history and history[-1].role == "user" and history[-1].content == inbound.text:
            history = history[:-1]
        knowledge = await self.knowledge_base.search(self.db, inbound.text)
        system_prompt = compose_system_prompt(
            BotConfigService(self.db).get_system_prompt(),
            full_name=user.full_name if user else None,
            email=user.email if user else None,
            memory_summary=users.get_memory_summary(user_id),
            knowledge=knowledge,
            promotions=offered,
        )
        return await self.reply_runner.run(inbound.text, system_prompt, history)

    def _schedule_followups(
        self,
        user_id: UUID,
        inbound: InboundMessage,
        reply: str,
        offered: Sequence[PromotableItemSnapshot],
        user_message_count: int,
    ) -> None:
        context = {"user_id": str(user_id)}
        if any(item.mentioned_in(reply) for item in offered):
            self.coordinator.spawn(
                "promotion_counters",
                self._record_promotions(user_id, reply, offered),
                **context,
            )
        self.coordinator.spawn(
            "transcript_request",
            TranscriptRequestCommand(
                self.intent_extractor, self.notifier, self.session_factory
            ).execute(user_id, inbound.text),
            **context,
        )
        if self.cadence.is_due(Channel.SMS, user_message_count):
            self.coordinator.spawn(
                "memory_update",
                self._update_memory(user_id, inbound.text, reply),
                **context,
            )

    async def _record_promotions(
        self, user_id: UUID, reply: str, offered: Sequence[PromotableItemSnapshot]
    ) -> list[str]:
        with self.session_factory() as db:
            return PromotionCapper(db).record_mentions(user_id, reply, offered)

    async def _update_memory(self, user_id: UUID, user_text: str, reply: str) -> bool:
        with self.session_factory() as db:
            return await MemoryArchivist(db, self.text_generator).update(
                user_id, user_text, reply, Channel.SMS
            )
