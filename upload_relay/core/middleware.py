"""Middleware configuration for FastAPI application.

Provides:
- CORS middleware setup with empty-bodied OPTIONS responses
- Request timing middleware
"""

import time
from typing import Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from upload_relay.core.config import settings
from upload_relay.core.logging import get_logger

logger = get_logger(__name__)


class RelayCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that answers every OPTIONS request with an empty 200.

    Browser preflights and bare OPTIONS requests alike get the static policy
    from cors_headers(), whatever the requested headers or origin.
    """

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["method"] == "OPTIONS":
            response = Response(status_code=200, headers=cors_headers())
            await response(scope, receive, send)
            return

        await super().__call__(scope, receive, send)


def cors_headers() -> Dict[str, str]:
    """Static CORS headers sent on every OPTIONS response."""
    return {
        "Access-Control-Allow-Origin": settings.allowed_origin,
        "Access-Control-Allow-Methods": ", ".join(settings.CORS_METHODS),
        "Access-Control-Allow-Headers": ", ".join(settings.CORS_HEADERS),
        "Access-Control-Max-Age": str(settings.CORS_MAX_AGE),
    }


def setup_cors_middleware(app: FastAPI) -> None:
    """Configure CORS middleware with settings from config.

    Args:
        app: FastAPI application instance
    """
    origin = settings.allowed_origin

    logger.info(
        "CORS configuration",
        environment=settings.ENVIRONMENT,
        allowed_origin=origin,
        methods=", ".join(settings.CORS_METHODS),
    )

    app.add_middleware(
        RelayCORSMiddleware,
        allow_origins=[origin],
        allow_credentials=False,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_HEADERS,
        max_age=settings.CORS_MAX_AGE,
    )


def setup_timing_middleware(app: FastAPI) -> None:
    """Add request timing middleware.

    Args:
        app: FastAPI application instance
    """

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add processing time header to responses."""
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(round(process_time, 4))
        return response
