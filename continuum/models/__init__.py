from continuum.models.bot_config import BotConfig
from continuum.models.conversation import Conversation
from continuum.models.error_log import ErrorLog
from continuum.models.message import Message
from continuum.models.promotable_item import PromotableItem
from continuum.models.user import User

__all__ = [
    "BotConfig",
    "Conversation",
    "ErrorLog",
    "Message",
    "PromotableItem",
    "User",
]
