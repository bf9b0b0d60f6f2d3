"""
FastAPI application entrypoint for the Bitrix24 contacts bridge.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api.contacts import router as contacts_router
from app.api.envelope import failure
from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.errors import BridgeError
from app.core.logging import configure_logging

logger = logging.getLogger(__name__)


async def _handle_bridge_error(request: Request, exc: BridgeError) -> JSONResponse:
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=int(exc.status_code),
        content=failure(type(exc).message, exc.detail),
    )


async def _handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content=failure("Validation failed", problems or "Invalid request"),
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "%s %s raised an unhandled error", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=500,
        content=failure("Internal server error", str(exc) or type(exc).__name__),
    )


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Bitrix24 Contacts Bridge",
        version="0.1.0",
        description="OAuth installation and contact management proxy for Bitrix24.",
    )
    app.add_exception_handler(BridgeError, _handle_bridge_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)
    app.include_router(api_router)
    app.include_router(contacts_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
