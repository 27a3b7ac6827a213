"""
main.py
-------
FastAPI application factory and entry point.

Application lifecycle:
  1. App is created by create_application().
  2. lifespan context manager runs on startup / shutdown.
  3. Routers are registered under settings.API_PREFIX.
  4. Every request gets a request_id (X-Request-ID) bound into the log context.
  5. Exception handlers render typed core errors as
     {"error": {"code", "message", "errors"}} and normalise unexpected ones.

Run with:
    uvicorn main:app --reload              # development
    uvicorn main:app --workers 1           # production; the realtime hub is in-process
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from slime_talks.api.routes import channels, client, customers, messages
from slime_talks.core.config import settings
from slime_talks.core.exceptions import SlimeTalksError, ValidationError
from slime_talks.core.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
)
from slime_talks.db.session import engine

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Startup / shutdown lifecycle hook.

    Startup:
      - Configure structured logging

    Shutdown:
      - Dispose the async engine (graceful connection pool drain)
    """
    configure_logging()
    logger.info(
        "Starting up",
        app=settings.APP_NAME,
        env=settings.APP_ENV,
        debug=settings.DEBUG,
    )
    yield
    logger.info("Shutting down, disposing DB engine")
    await engine.dispose()


def create_application() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Multi-tenant messaging backend: customers, general and custom "
            "channels, an append-only message ledger and realtime events."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── CORS ─────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    # ── Request context ───────────────────────────────────────────────────────
    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        clear_request_context()
        bind_request_context(request_id=request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            return response
        finally:
            clear_request_context()

    # ── Routers ───────────────────────────────────────────────────────────────
    app.include_router(client.router, prefix=settings.API_PREFIX)
    app.include_router(customers.router, prefix=settings.API_PREFIX)
    app.include_router(channels.router, prefix=settings.API_PREFIX)
    app.include_router(messages.router, prefix=settings.API_PREFIX)

    # ── Exception Handlers ────────────────────────────────────────────────────

    @app.exception_handler(SlimeTalksError)
    async def slime_talks_error_handler(
        request: Request, exc: SlimeTalksError
    ) -> JSONResponse:
        logger.info(
            "Request rejected",
            path=request.url.path,
            method=request.method,
            code=exc.code,
            status_code=exc.status_code,
        )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # ("body", "email") -> "email"; nested paths keep their dotted tail
        errors: dict = {}
        for error in exc.errors():
            loc = [str(part) for part in error["loc"][1:]] or [str(error["loc"][0])]
            errors.setdefault(".".join(loc), []).append(error["msg"])
        body = ValidationError(errors=errors)
        return JSONResponse(status_code=body.status_code, content=body.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}},
        )

    # ── Health Check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["Health"], summary="Service health check")
    async def health() -> dict:
        return {"status": "ok", "app": settings.APP_NAME, "env": settings.APP_ENV}

    return app


app = create_application()
