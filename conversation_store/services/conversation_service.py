import logging
from typing import Callable, Optional

from ..configs import StoreSettings
from ..models import (
    AvailabilityGate,
    ConversationInfo,
    CONVERSATION_INFO_TYPE,
    DocumentNotFoundError,
    conversation_doc_id,
)
from ..utils import now_iso

logger = logging.getLogger(__name__)

# Fields that address the document; extra fields may not override them
_ADDRESS_FIELDS = ("id", "conversationId", "userId", "partitionKey", "documentType")


class ConversationService:
    """
    Reads and writes the per-conversation metadata document.

    Every write is a replace-or-insert keyed by the deterministic document id, so a
    write never fails because the document already exists. Counters are updated by
    read, merge, then upsert; two concurrent refreshes of the same pair may both read
    the same count, in which case the last writer wins.
    """

    def __init__(self, gate: AvailabilityGate, settings: StoreSettings, clock: Optional[Callable[[], str]] = None):
        self.gate = gate
        self.settings = settings
        self.clock = clock or (lambda: now_iso(settings.timezone))

    def _base_document(self, conversation_id: str, user_id: str, user_name: Optional[str], timestamp: str) -> dict:
        return {
            "id": conversation_doc_id(conversation_id),
            "conversationId": conversation_id,
            "userId": user_id,
            "userName": user_name,
            "documentType": CONVERSATION_INFO_TYPE,
            "createdAt": timestamp,
            "lastActivity": timestamp,
            "messageCount": 0,
            "isActive": True,
            "partitionKey": user_id,
            "ttl": self.settings.ttl_seconds,
        }

    async def get_conversation_info(self, conversation_id: str, user_id: str) -> Optional[ConversationInfo]:
        """Point read of the metadata document. A missing document is a normal outcome."""
        if not self.gate.is_available():
            return None
        if not conversation_id or not user_id:
            return None

        try:
            doc = await self.gate.store.read_item(conversation_doc_id(conversation_id), user_id)
            return ConversationInfo.model_validate(doc)
        except DocumentNotFoundError:
            logger.info(f"[{user_id}] Conversation info not found: {conversation_id}")
            return None
        except Exception as e:
            logger.error(f"[{user_id}] Error reading conversation info {conversation_id}: {e}")
            return None

    async def save_conversation_info(
        self,
        conversation_id: str,
        user_id: str,
        user_name: Optional[str] = None,
        extra_fields: Optional[dict] = None,
    ) -> Optional[ConversationInfo]:
        """
        Write the metadata document from scratch, replacing any existing one.

        Args:
            conversation_id: ID of the conversation
            user_id: owner of the conversation (partition key)
            user_name: display name stored on the document
            extra_fields: additional fields; they override the defaults but not the addressing fields
        """
        if not self.gate.is_available():
            logger.warning("Document store unavailable - conversation info not saved")
            return None
        if not conversation_id or not user_id:
            logger.warning("Conversation info rejected: conversationId and userId are required")
            return None

        doc = self._base_document(conversation_id, user_id, user_name, self.clock())
        for field, value in (extra_fields or {}).items():
            if field not in _ADDRESS_FIELDS:
                doc[field] = value

        try:
            written = await self.gate.store.upsert_item(doc)
        except Exception as e:
            logger.error(f"[{user_id}] Error saving conversation info {conversation_id}: {e}")
            return None

        logger.info(f"[{user_id}] Conversation info saved: {conversation_id}")
        return ConversationInfo.model_validate(written) if written else None

    async def record_activity(self, conversation_id: str, user_id: str, user_name: Optional[str] = None) -> bool:
        """
        Bump lastActivity and messageCount, creating the document on first use.
        Returns True when the store confirmed the write.
        """
        if not self.gate.is_available():
            return False
        if not conversation_id or not user_id:
            logger.warning("Activity update rejected: conversationId and userId are required")
            return False

        doc_id = conversation_doc_id(conversation_id)
        timestamp = self.clock()

        prior = None
        try:
            prior = await self.gate.store.read_item(doc_id, user_id)
        except DocumentNotFoundError:
            pass
        except Exception as e:
            logger.warning(f"[{user_id}] Could not read conversation info {conversation_id}, starting fresh: {e}")

        next_doc = self._base_document(conversation_id, user_id, user_name, timestamp)
        prior_count = 0
        if prior:
            next_doc.update(prior)
            if not next_doc.get("userName") and user_name:
                next_doc["userName"] = user_name
            count = prior.get("messageCount")
            if isinstance(count, int) and not isinstance(count, bool):
                prior_count = count

        next_doc.update(
            id=doc_id,
            conversationId=conversation_id,
            userId=user_id,
            partitionKey=user_id,
            documentType=CONVERSATION_INFO_TYPE,
            lastActivity=timestamp,
            messageCount=prior_count + 1,
            isActive=True,
            ttl=self.settings.ttl_seconds,
        )

        # Replace-or-insert, never create: a create after a "not found" read races with
        # another first write for the same conversation.
        try:
            written = await self.gate.store.upsert_item(next_doc)
        except Exception as e:
            logger.error(f"[{user_id}] Error updating conversation activity {conversation_id}: {e}")
            return False

        return bool(written)
