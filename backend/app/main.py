"""FastAPI application."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.app.api.routes.files import router as files_router
from backend.app.api.routes.health import router as health_router
from backend.app.api.routes.messages import router as messages_router
from backend.app.api.routes.metrics import router as metrics_router
from backend.app.config import get_settings
from backend.app.errors import ChatError, InputValidationError
from backend.app.resources import AppResources
from backend.app.utils.logging import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build shared resources unless a test already installed them."""
    settings = get_settings()
    configure_logging(settings.log_level)

    owned = getattr(app.state, "resources", None) is None
    if owned:
        app.state.resources = AppResources.create(settings)

    yield

    if owned:
        await app.state.resources.aclose()
        app.state.resources = None


app = FastAPI(title="PDF Chat API", version="0.1.0", lifespan=lifespan)

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(messages_router)
app.include_router(files_router)


def _error_body(error: ChatError) -> dict[str, str]:
    return {"detail": error.message, "error": type(error).__name__}


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    """Render any chat error with the status it carries."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed path or query parameters as 400."""
    fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
    error = InputValidationError(f"Invalid request: {', '.join(fields)}")
    return JSONResponse(status_code=error.status_code, content=_error_body(error))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Generic 500 without internals."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "internal error", "error": "InternalError"},
    )


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "PDF Chat API", "version": "0.1.0"}
