from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class Message(BaseModel):
    """
    A single exchange stored in the conversations collection. Never updated after it is written.
    """
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Generated id, msg_<epoch-millis>_<suffix>.")
    messageId: str = Field(..., description="Same value as id.")
    conversationId: str = Field(..., description="Conversation the message belongs to.")
    userId: str = Field(..., description="Owner of the conversation; partition key.")
    userName: Optional[str] = Field(default=None, description="Display name of the user, if known.")
    message: str = Field(..., description="Message text, already truncated to the maximum length.")
    messageType: str = Field(default="user", description="'user' | 'bot' | 'system'.")
    timestamp: str = Field(..., description="ISO-8601 instant of the write.")
    dateCreated: str = Field(..., description="Same value as timestamp.")
    partitionKey: str = Field(..., description="Copy of userId.")
    ttl: int = Field(..., description="Seconds until the store may reclaim the document.")
