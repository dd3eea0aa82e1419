from fastapi import Request

from ..services import ConversationStore


def get_store(request: Request) -> ConversationStore:
    """The store handle created by the app's lifespan."""
    return request.app.state.store
