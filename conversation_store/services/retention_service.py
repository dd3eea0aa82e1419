import logging
from typing import Iterable, Optional

from pymongo import DESCENDING

from ..configs import StoreSettings
from ..models import AvailabilityGate, CONVERSATION_INFO_TYPE, DocumentNotFoundError
from ..utils import parse_iso

logger = logging.getLogger(__name__)


class RetentionService:
    """
    Removes old messages and whole conversations. Deletes are issued one document at
    a time; a failed delete is logged and skipped, and a batch cut short can be re-run.
    """

    def __init__(self, gate: AvailabilityGate, settings: StoreSettings):
        self.gate = gate
        self.settings = settings

    async def _delete_each(self, doc_ids: Iterable[str], user_id: str) -> int:
        deleted_count = 0
        for doc_id in doc_ids:
            try:
                await self.gate.store.delete_item(doc_id, user_id)
                deleted_count += 1
            except DocumentNotFoundError:
                logger.info(f"[{user_id}] Document {doc_id} already deleted")
            except Exception as e:
                logger.warning(f"[{user_id}] Error deleting document {doc_id}: {e}")
        return deleted_count

    async def clean_old_messages(self, conversation_id: str, user_id: str, keep_last: Optional[int] = None) -> int:
        """Keep the `keep_last` most recent messages and delete the rest. Returns the number deleted."""
        if not self.gate.is_available():
            return 0
        if not conversation_id or not user_id:
            return 0
        if keep_last is None:
            keep_last = self.settings.keep_last
        keep_last = max(keep_last, 0)

        logger.info(f"[{user_id}] Cleaning old messages (keep: {keep_last})")

        try:
            messages = await self.gate.store.query_items(
                {
                    "conversationId": conversation_id,
                    "userId": user_id,
                    "documentType": {"$ne": CONVERSATION_INFO_TYPE},
                },
                partition_key=user_id,
                fields=["timestamp"],
                sort=[("timestamp", DESCENDING)],
            )
        except Exception as e:
            logger.error(f"[{user_id}] Error listing messages for cleanup: {e}")
            return 0

        # Offsets differ across DST changes, so string order is not instant order.
        messages.sort(key=lambda msg: parse_iso(msg.get("timestamp")), reverse=True)

        if len(messages) <= keep_last:
            logger.info(f"[{user_id}] Nothing to clean ({len(messages)} <= {keep_last})")
            return 0

        deleted_count = await self._delete_each((msg["id"] for msg in messages[keep_last:]), user_id)
        logger.info(f"[{user_id}] Old messages deleted: {deleted_count}")
        return deleted_count

    async def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        """Delete every message and the metadata document of a conversation."""
        if not self.gate.is_available():
            return False
        if not conversation_id or not user_id:
            return False

        logger.info(f"[{user_id}] Deleting conversation: {conversation_id}")

        try:
            docs = await self.gate.store.query_items(
                {"conversationId": conversation_id, "userId": user_id},
                partition_key=user_id,
                fields=["id"],
            )
        except Exception as e:
            logger.error(f"[{user_id}] Error listing conversation documents: {e}")
            return False

        deleted_count = await self._delete_each((doc["id"] for doc in docs), user_id)
        logger.info(f"[{user_id}] Conversation deleted ({deleted_count} documents)")
        return deleted_count > 0
