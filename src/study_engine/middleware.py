from __future__ import annotations

import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from structlog import contextvars as structlog_contextvars

from .logging import logger


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Emit one structured `request_complete` line per request.

    `request_id` を採番して ContextVar に束縛し、処理中に出力されるログ
    （attempt_appended / card_updated など）と突合できるようにする。
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.time()
        request_id = request.headers.get("x-request-id") or uuid4().hex
        request.state.request_id = request_id
        structlog_contextvars.bind_contextvars(request_id=request_id)
        status_code: int | None = None
        is_error = False
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            return response
        except Exception:
            is_error = True
            status_code = 500
            raise
        finally:
            latency_ms = (time.time() - start) * 1000
            log_method = logger.error if is_error or (status_code or 0) >= 500 else logger.info
            log_method(
                "request_complete",
                path=request.url.path,
                method=request.method,
                status_code=status_code,
                latency_ms=round(latency_ms, 2),
                is_error=is_error,
            )
            structlog_contextvars.unbind_contextvars("request_id")
