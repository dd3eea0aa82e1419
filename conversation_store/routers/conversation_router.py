from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Optional

from ..models import ConversationInfo, Message
from ..schemas import DeleteConversationResponse, MessageCreate, MessagesResponse, TrimResponse
from ..services import ConversationStore
from .dependencies import get_store

router = APIRouter(tags=["Conversations"])


@router.get("/{conversation_id}/messages", response_model=MessagesResponse)
async def get_conversation_history(
    conversation_id: str,
    user_id: str = Query(..., alias="userId"),
    limit: int = Query(20, ge=1, le=200),
    store: ConversationStore = Depends(get_store),
):
    """Most recent messages of a conversation, oldest first."""
    items = await store.history(conversation_id, user_id, limit)
    return MessagesResponse(items=items, total=len(items))


@router.post("/{conversation_id}/messages", response_model=Message, status_code=201)
async def append_message(
    conversation_id: str,
    payload: MessageCreate,
    store: ConversationStore = Depends(get_store),
):
    """Store a message in the conversation."""
    message = await store.append(
        payload.message,
        conversation_id,
        payload.userId,
        user_name=payload.userName,
        message_type=payload.messageType,
    )
    if message is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Message not saved")
    return message


@router.get("/{conversation_id}", response_model=ConversationInfo)
async def get_conversation_info(
    conversation_id: str,
    user_id: str = Query(..., alias="userId"),
    store: ConversationStore = Depends(get_store),
):
    info = await store.get_metadata(conversation_id, user_id)
    if info is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return info


@router.post("/{conversation_id}/trim", response_model=TrimResponse)
async def trim_messages(
    conversation_id: str,
    user_id: str = Query(..., alias="userId"),
    keep_last: Optional[int] = Query(None, alias="keepLast", ge=0),
    store: ConversationStore = Depends(get_store),
):
    """Delete all but the most recent `keepLast` messages."""
    deleted = await store.trim_messages(conversation_id, user_id, keep_last)
    return TrimResponse(deleted=deleted)


@router.delete("/{conversation_id}", response_model=DeleteConversationResponse)
async def delete_conversation(
    conversation_id: str,
    user_id: str = Query(..., alias="userId"),
    store: ConversationStore = Depends(get_store),
):
    deleted = await store.delete_conversation(conversation_id, user_id)
    return DeleteConversationResponse(deleted=deleted)
