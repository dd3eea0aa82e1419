from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class MessageCreate(BaseModel):
    userId: str
    message: str
    userName: Optional[str] = None
    messageType: str = "user"


# History entry as consumed by the conversational runtime
class MessagePublic(BaseModel):
    id: str
    message: str
    conversationId: str
    userId: str
    userName: Optional[str] = None
    timestamp: str
    type: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MessagesResponse(BaseModel):
    items: list[MessagePublic] = Field(description="Messages in chronological order")
    total: int


class TrimResponse(BaseModel):
    deleted: int


class DeleteConversationResponse(BaseModel):
    deleted: bool
