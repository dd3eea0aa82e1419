import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .configs import StoreSettings
from .routers import conversation_router, diagnostic_router
from .services import ConversationStore


def create_app(store: Optional[ConversationStore] = None) -> FastAPI:
    """
    Build the API around a store handle. Without one, settings are read from the
    environment (and `.env`).
    """
    if store is None:
        store = ConversationStore(StoreSettings.from_env())

    logging.basicConfig(
        level=store.settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Open the store when the server starts, close it on shutdown
        await store.open()
        try:
            yield
        finally:
            await store.close()

    app = FastAPI(
        title="Conversation Store",
        description="Persistence of conversation messages and per-conversation metadata.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.store = store

    # Exception handler for RequestValidationError (Pydantic validation)
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        error_messages = []
        for error in exc.errors():
            field = " -> ".join(str(loc) for loc in error["loc"])
            message = error.get("msg", "Validation error")
            error_messages.append(f"{field}: {message}")

        detail = "; ".join(error_messages) if error_messages else "Invalid request data"

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": detail}
        )

    app.include_router(diagnostic_router.router)
    app.include_router(conversation_router.router, prefix="/api/conversations")

    @app.get("/")
    def read_root():
        return {"message": "Conversation store is running"}

    return app
