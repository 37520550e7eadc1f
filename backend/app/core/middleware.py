"""
CORS and request-logging middleware.
"""

import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings

log = logging.getLogger("app.requests")


def setup_cors(app: FastAPI) -> None:
    """Allow the scanner front-end origins configured in CORS_ORIGINS."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type"],
    )


def setup_request_logging(app: FastAPI) -> None:
    """Log method, path, status and duration of every request at DEBUG."""

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        log.debug(
            "%s %s -> %d (%.1f ms)",
            request.method, request.url.path, response.status_code, elapsed_ms,
        )
        return response
