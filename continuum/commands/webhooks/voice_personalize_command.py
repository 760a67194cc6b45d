"""
Command to answer the voice agent's call-start (personalize) webhook with the
caller's memory, recent cross-channel history and a greeting.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from continuum.adapters.elevenlabs import ElevenLabsAdapter
from continuum.config import get_settings
from continuum.exceptions import MalformedUpstreamPayload
from continuum.prompts.system_prompt import (
    DEFAULT_CALL_GREETING,
    NO_MEMORY,
    WELCOME_BACK_GREETING,
)
from continuum.schemas.messages import Channel
from continuum.schemas.voice import DynamicVariables, PersonalizeResponse
from continuum.services.conversation_service import ConversationService
from continuum.services.error_log_service import ErrorLogService
from continuum.services.message_service import MessageService, format_history_for_call
from continuum.services.user_service import UserService


def greeting_for(first_name: Optional[str], memory_summary: str) -> str:
    if memory_summary:
        return WELCOME_BACK_GREETING.format(name=first_name or "there")
    return DEFAULT_CALL_GREETING


class VoicePersonalizeCommand:
    def __init__(self, db: Session, adapter: Optional[ElevenLabsAdapter] = None) -> None:
        self.db = db
        self.settings = get_settings()
        self.adapter = adapter or ElevenLabsAdapter()
        self.logger = logging.getLogger(__name__)

    async def execute(self, payload: dict[str, Any]) -> PersonalizeResponse:
        """Any failure yields empty dynamic variables; the call proceeds unpersonalized."""
        try:
            call = self.adapter.parse_call_start(payload)
        except MalformedUpstreamPayload as e:
            self.logger.info("Personalize without caller: %s", e)
            return PersonalizeResponse.empty()

        user_id = None
        try:
            users = UserService(self.db)
            conversations = ConversationService(self.db)
            user_id = users.resolve_user_id(call.raw_address)
            conversations.get_or_open(user_id, Channel.CALL)
            memory = users.get_memory_summary(user_id)
            history = MessageService(self.db).get_recent_history(
                conversations.list_ids_for_user(user_id), limit=self.settings.history_limit
            )
            user = users.get_user(user_id)
        except Exception as e:
            ErrorLogService(self.db).record(
                stage="elevenlabs_personalize",
                message=str(e) or e.__class__.__name__,
                channel=Channel.CALL.value,
                phone=call.address,
                user_id=user_id,
            )
            return PersonalizeResponse.empty()

        return PersonalizeResponse(
            dynamic_variables=DynamicVariables(
                memory_summary=memory or NO_MEMORY,
                caller_phone=call.address,
                channel=Channel.CALL.value,
                recent_history=format_history_for_call(history),
                first_greeting=greeting_for(user.first_name, memory),
                user_name=user.full_name or "Unknown",
                user_email=user.email or "Unknown",
            )
        )
