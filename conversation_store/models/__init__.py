from .message import Message
from .conversation import ConversationInfo, CONVERSATION_INFO_TYPE, conversation_doc_id
from .database import AvailabilityGate, DocumentStore, DocumentStoreError, DocumentNotFoundError
