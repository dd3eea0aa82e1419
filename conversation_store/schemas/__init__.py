from .message_schema import (
    MessageCreate,
    MessagePublic,
    MessagesResponse,
    TrimResponse,
    DeleteConversationResponse
)
from .stats_schema import ConfigInfo, StoreStats, HealthResponse, DiagnosticResponse
