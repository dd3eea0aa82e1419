from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

CONVERSATION_INFO_TYPE = "conversation_info"


def conversation_doc_id(conversation_id: str) -> str:
    return f"conversation_{conversation_id}"


class ConversationInfo(BaseModel):
    """
    Metadata document kept once per (conversationId, userId).
    Unknown fields are kept so they survive read-modify-write cycles.
    """
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="conversation_<conversationId>.")
    conversationId: str = Field(..., description="ID of the conversation.")
    userId: str = Field(..., description="Owner of the conversation; partition key.")
    userName: Optional[str] = Field(default=None, description="Display name of the user.")
    documentType: str = Field(default=CONVERSATION_INFO_TYPE)
    createdAt: str = Field(..., description="Set on the first write and never changed.")
    lastActivity: str = Field(..., description="Instant of the most recent write.")
    messageCount: int = Field(default=0, description="One per recorded activity event.")
    isActive: bool = Field(default=True)
    partitionKey: str = Field(..., description="Copy of userId.")
    ttl: int = Field(..., description="Seconds until the store may reclaim the document.")
