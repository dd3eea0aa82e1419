from .conversation_service import ConversationService
from .message_service import MessageService
from .retention_service import RetentionService
from .stats_service import StatsService
from .conversation_store import ConversationStore

__all__ = [
    "ConversationService",
    "MessageService",
    "RetentionService",
    "StatsService",
    "ConversationStore"
]
