"""
Command to text the caller after a voice call, offering the call transcript.
The sent text is recorded as an agent message in the user's SMS conversation.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from continuum.adapters.base import BaseMessagingAdapter
from continuum.config import get_settings
from continuum.prompts.system_prompt import FOLLOWUP_WITH_PROFILE, FOLLOWUP_WITHOUT_PROFILE
from continuum.schemas.messages import Channel, OutboundMessage, OutboundSendResult, Provider
from continuum.services.conversation_service import ConversationService
from continuum.services.message_service import MessageService
from continuum.services.user_service import UserService

logger = logging.getLogger(__name__)


class PostCallFollowupCommand:
    def __init__(self, db: Session, adapter: BaseMessagingAdapter) -> None:
        self.db = db
        self.adapter = adapter
        self.settings = get_settings()

    def compose(self, user_id: UUID) -> Optional[str]:
        user = UserService(self.db).get_user(user_id)
        if user is None:
            return None
        if user.email and user.full_name:
            return FOLLOWUP_WITH_PROFILE.format(
                first_name=user.first_name, agent_name=self.settings.agent_name
            )
        return FOLLOWUP_WITHOUT_PROFILE.format(agent_name=self.settings.agent_name)

    async def execute(self, user_id: UUID, address: str) -> OutboundSendResult:
        text = self.compose(user_id)
        if text is None:
            logger.warning("Follow-up skipped: user %s not found", user_id)
            return OutboundSendResult(success=False)
        result = await self.adapter.send(OutboundMessage(to=address, text=text))
        if not result.success:
            return result
        conversation_id = ConversationService(self.db).get_or_open(user_id, Channel.SMS)
        MessageService(self.db).record_agent_message(
            conversation_id, Channel.SMS, text, Provider.TWILIO.value
        )
        return result
