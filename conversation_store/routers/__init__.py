from . import conversation_router, diagnostic_router
