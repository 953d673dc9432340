"""
FastAPI application entry point.

Run with ``uvicorn heirloom.app:create_app --factory`` or ``heirloom serve``.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from heirloom.config import Settings, get_settings
from heirloom.db import Database
from heirloom.errors import HeirloomError
from heirloom.identity import GoogleIdentityProvider, IdentityProvider
from heirloom.routes import auth_router, router

logger = logging.getLogger(__name__)

_STARTED_AT = time.monotonic()


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    identity_provider: Optional[IdentityProvider] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    if database is None:
        database = Database(settings.database_url)
    database.ensure_schema()

    if identity_provider is None and settings.google_client_id:
        identity_provider = GoogleIdentityProvider.from_settings(settings)
    if identity_provider is None:
        logger.warning("Google OAuth is not configured; /auth/google is disabled")

    app = FastAPI(title="Heirloom Accounts API", version="0.1.0")
    app.state.settings = settings
    app.state.database = database
    app.state.identity_provider = identity_provider

    add_exception_handlers(app, settings)
    app.include_router(auth_router)
    app.include_router(router, prefix=settings.api_prefix)

    @app.get("/")
    def index(request: Request):
        return {
            "message": "Heirloom accounts service is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": "development" if settings.debug else "production",
        }

    @app.get("/health")
    def health():
        return {
            "status": "OK",
            "uptime": round(time.monotonic() - _STARTED_AT, 3),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


def _error_body(error: str, code: str, details=None) -> dict:
    return {"error": error, "code": code, "details": details}


def add_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(HeirloomError)
    async def heirloom_error_handler(request: Request, exc: HeirloomError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, exc.code, exc.details),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(exc.detail), "HTTP_ERROR"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=_error_body(
                "Input validation failed",
                "VALIDATION_ERROR",
                # ctx can hold exception objects that are not JSON serializable
                [
                    {k: v for k, v in err.items() if k in ("loc", "msg", "type")}
                    for err in exc.errors()
                ],
            ),
        )

    @app.exception_handler(Exception)
    async def unexpected_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = str(exc) if settings.debug else "Internal server error"
        return JSONResponse(
            status_code=500,
            content=_error_body(message, "INTERNAL_ERROR"),
        )
