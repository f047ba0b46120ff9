"""
FastAPI middleware for request tracing and logging.

Every request gets a short request id (or reuses X-Request-ID), the
storefront session id when the client sends one, and a timing log line.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging import bind_context, clear_context, get_logger


logger = get_logger(__name__)

SESSION_HEADER = "X-Session-ID"


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """
    Bind request_id/method/path (and session_id) for all logs emitted while
    handling the request, log start and completion with duration, and echo
    the request id back in the X-Request-ID response header.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])

        bind_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        session_id = request.headers.get(SESSION_HEADER) or request.query_params.get("session_id")
        if session_id:
            bind_context(session_id=session_id)

        start_time = time.perf_counter()
        logger.debug("Request started")

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "Request completed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Request failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round(duration_ms, 2),
            )
            raise

        finally:
            clear_context()
