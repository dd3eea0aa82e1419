from pydantic import BaseModel
from typing import Optional, Union

# A count, or the "error" marker when its query failed
CountField = Optional[Union[int, str]]


class ConfigInfo(BaseModel):
    available: bool
    initialized: bool
    database: Optional[str] = None
    container: Optional[str] = None
    partitionKey: Optional[str] = None
    error: Optional[str] = None


class StoreStats(BaseModel):
    available: bool
    initialized: bool = False
    database: Optional[str] = None
    container: Optional[str] = None
    partitionKey: Optional[str] = None
    totalDocuments: CountField = None
    conversations: CountField = None
    userMessages: CountField = None
    botMessages: CountField = None
    systemMessages: CountField = None
    totalMessages: int = 0
    recentActivity: Optional[str] = None
    timestamp: Optional[str] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    store: dict


class DiagnosticResponse(BaseModel):
    store: ConfigInfo
    stats: StoreStats
