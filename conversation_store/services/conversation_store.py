import logging
from typing import Callable, List, Optional

from ..configs import StoreSettings
from ..models import AvailabilityGate, ConversationInfo, DocumentStore, Message
from ..schemas import MessagePublic, StoreStats
from ..utils import BackgroundTaskQueue, now_iso
from .conversation_service import ConversationService
from .message_service import MessageService
from .retention_service import RetentionService
from .stats_service import StatsService

logger = logging.getLogger(__name__)


class ConversationStore:
    """
    Store handle for the conversational runtime. Build one at process start, call
    `open()` once, pass it to whoever needs persistence, and `close()` on shutdown.

    Every operation may be called while the store is unavailable; it then returns
    an empty list, None, False or 0 instead of raising.
    """

    def __init__(
        self,
        settings: Optional[StoreSettings] = None,
        store_factory: Callable[[StoreSettings], DocumentStore] = DocumentStore.from_settings,
        clock: Optional[Callable[[], str]] = None,
    ):
        self.settings = settings or StoreSettings.from_env()
        clock = clock or (lambda: now_iso(self.settings.timezone))
        self.gate = AvailabilityGate(self.settings, store_factory)
        self.queue = BackgroundTaskQueue("metadata-refresh")
        self.conversations = ConversationService(self.gate, self.settings, clock)
        self.messages = MessageService(self.gate, self.settings, self.conversations, self.queue, clock)
        self.retention = RetentionService(self.gate, self.settings)
        self.statistics = StatsService(self.gate, self.settings, clock)

    async def open(self) -> bool:
        """Configure the client and start the background probe and worker."""
        logger.info("Initializing conversation store...")
        if not self.gate.initialize():
            return False
        self.gate.schedule_probe()
        self.queue.start()
        return True

    async def drain(self) -> None:
        """Wait for queued metadata refreshes to finish."""
        await self.queue.join()

    async def close(self) -> None:
        await self.queue.stop()
        await self.gate.close()
        logger.info("Conversation store closed")

    def is_available(self) -> bool:
        return self.gate.is_available()

    def config_info(self) -> dict:
        return self.gate.config_info()

    async def append(
        self,
        message: str,
        conversation_id: str,
        user_id: str,
        user_name: Optional[str] = None,
        message_type: str = "user",
    ) -> Optional[Message]:
        return await self.messages.save_message(message, conversation_id, user_id, user_name, message_type)

    async def history(self, conversation_id: str, user_id: str, limit: int = 20) -> List[MessagePublic]:
        return await self.messages.get_conversation_history(conversation_id, user_id, limit)

    async def save_metadata(
        self,
        conversation_id: str,
        user_id: str,
        user_name: Optional[str] = None,
        extra_fields: Optional[dict] = None,
    ) -> Optional[ConversationInfo]:
        return await self.conversations.save_conversation_info(conversation_id, user_id, user_name, extra_fields)

    async def get_metadata(self, conversation_id: str, user_id: str) -> Optional[ConversationInfo]:
        return await self.conversations.get_conversation_info(conversation_id, user_id)

    async def record_activity(self, conversation_id: str, user_id: str, user_name: Optional[str] = None) -> bool:
        return await self.conversations.record_activity(conversation_id, user_id, user_name)

    async def trim_messages(self, conversation_id: str, user_id: str, keep_last: Optional[int] = None) -> int:
        return await self.retention.clean_old_messages(conversation_id, user_id, keep_last)

    async def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        return await self.retention.delete_conversation(conversation_id, user_id)

    async def stats(self) -> StoreStats:
        return await self.statistics.get_stats()
