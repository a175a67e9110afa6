"""HTTP middleware logging request start, completion, and elapsed time."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request, Response

logger = logging.getLogger(__name__)


def register_request_logging(app: FastAPI) -> None:
    """Attach request timing logs to every route of the app."""

    @app.middleware("http")
    async def log_requests(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        method = request.method
        path = request.url.path
        logger.info("request_started method=%s path=%s", method, path)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        logger.info(
            "request_completed method=%s path=%s status=%s elapsed_ms=%d",
            method,
            path,
            response.status_code,
            elapsed_ms,
        )
        return response
