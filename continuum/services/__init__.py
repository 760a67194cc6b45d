from continuum.services.bot_config_service import BotConfigService
from continuum.services.conversation_service import ConversationService
from continuum.services.error_log_service import ErrorLogService
from continuum.services.memory_archivist import MemoryArchivist, MemoryCadence
from continuum.services.message_service import MessageService
from continuum.services.promotion_service import PromotionCapper, PromotionCatalog
from continuum.services.transcript_service import TranscriptService
from continuum.services.user_service import UserService

__all__ = [
    "BotConfigService",
    "ConversationService",
    "ErrorLogService",
    "MemoryArchivist",
    "MemoryCadence",
    "MessageService",
    "PromotionCapper",
    "PromotionCatalog",
    "TranscriptService",
    "UserService",
]
