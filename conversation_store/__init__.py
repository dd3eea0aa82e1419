from .configs import StoreSettings
from .services import ConversationStore

__all__ = ["StoreSettings", "ConversationStore"]
