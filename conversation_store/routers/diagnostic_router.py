from fastapi import APIRouter, Depends

from ..schemas import ConfigInfo, DiagnosticResponse, HealthResponse
from ..services import ConversationStore
from ..utils import now_iso
from .dependencies import get_store

router = APIRouter(tags=["Diagnostics"])


@router.get("/health", response_model=HealthResponse)
async def health(store: ConversationStore = Depends(get_store)):
    return HealthResponse(
        status="OK",
        timestamp=now_iso(store.settings.timezone),
        store={"available": store.is_available()},
    )


@router.get("/diagnostic", response_model=DiagnosticResponse)
async def diagnostic(store: ConversationStore = Depends(get_store)):
    """Store configuration (without secrets) and document counts."""
    return DiagnosticResponse(
        store=ConfigInfo(**store.config_info()),
        stats=await store.stats(),
    )
