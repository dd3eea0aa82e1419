import logging
from typing import Callable, List, Optional

from pymongo import DESCENDING

from ..configs import StoreSettings
from ..models import AvailabilityGate, Message
from ..schemas import MessagePublic
from ..utils import BackgroundTaskQueue, generate_message_id, map_message_to_public, now_iso, parse_iso
from .conversation_service import ConversationService

logger = logging.getLogger(__name__)


class MessageService:

    def __init__(
        self,
        gate: AvailabilityGate,
        settings: StoreSettings,
        conversations: ConversationService,
        queue: BackgroundTaskQueue,
        clock: Optional[Callable[[], str]] = None,
    ):
        self.gate = gate
        self.settings = settings
        self.conversations = conversations
        self.queue = queue
        self.clock = clock or (lambda: now_iso(settings.timezone))

    async def save_message(
        self,
        message: str,
        conversation_id: str,
        user_id: str,
        user_name: Optional[str] = None,
        message_type: str = "user",
    ) -> Optional[Message]:
        """
        Store a message and queue a refresh of the conversation's metadata.
        Returns None when the message was not saved.
        """
        if not self.gate.is_available():
            logger.warning("Document store unavailable - message not saved")
            return None
        if not message or not conversation_id or not user_id:
            logger.warning("Message rejected: message, conversationId and userId are required")
            return None

        message_id = generate_message_id()
        timestamp = self.clock()
        message_doc = {
            "id": message_id,
            "messageId": message_id,
            "conversationId": conversation_id,
            "userId": user_id,
            "userName": user_name,
            "message": str(message)[: self.settings.max_message_length],
            "messageType": message_type or "user",  # 'user' | 'bot' | 'system'
            "timestamp": timestamp,
            "dateCreated": timestamp,
            "partitionKey": user_id,
            "ttl": self.settings.ttl_seconds,
        }

        try:
            created = await self.gate.store.create_item(message_doc)
        except Exception as e:
            logger.error(f"[{user_id}] Error saving message: {e}")
            return None

        logger.info(f"[{user_id}] Message saved: {message_id}")

        # Metadata refresh runs in the background (does not block the caller)
        self.queue.submit(self.conversations.record_activity, conversation_id, user_id, user_name=user_name)

        return Message.model_validate(created)

    async def get_conversation_history(self, conversation_id: str, user_id: str, limit: int = 20) -> List[MessagePublic]:
        """
        Most recent `limit` messages of a conversation, oldest first.
        """
        if not self.gate.is_available():
            logger.warning("Document store unavailable - returning empty history")
            return []
        if not conversation_id or not user_id or limit <= 0:
            return []

        try:
            docs = await self.gate.store.query_items(
                {
                    "conversationId": conversation_id,
                    "userId": user_id,
                    "messageType": {"$exists": True, "$ne": None},
                },
                partition_key=user_id,
                sort=[("timestamp", DESCENDING)],
                limit=limit,
            )
            # Re-sort by parsed instant; string order is not reliable across offsets
            docs.sort(key=lambda doc: parse_iso(doc.get("timestamp")))
            history = [map_message_to_public(doc) for doc in docs]
        except Exception as e:
            logger.error(f"[{user_id}] Error reading conversation history: {e}")
            return []

        logger.info(f"[{user_id}] History loaded: {len(history)} messages")
        return history
