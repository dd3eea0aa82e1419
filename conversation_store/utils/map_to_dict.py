from ..schemas import MessagePublic


# Helpers that turn stored documents into what callers consume
def map_message_to_public(doc: dict) -> MessagePublic:
    """Convert a raw message document into a history entry."""
    return MessagePublic(
        id=doc.get("messageId") or doc["id"],
        message=doc.get("message", ""),
        conversationId=doc["conversationId"],
        userId=doc["userId"],
        userName=doc.get("userName"),
        timestamp=doc["timestamp"],
        type=doc.get("messageType"),
    )
