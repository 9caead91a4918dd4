"""Request ID middleware — correlates log lines of one HTTP request."""

from __future__ import annotations

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

log = structlog.get_logger("packsafe.api")

REQUEST_ID_HEADER = "X-Request-ID"
# Keep-alive pings hit these every few minutes; log them at debug only.
_QUIET_PATHS = frozenset({"/health"})


def _accept_request_id(value: str) -> str:
    """Reuse a caller-supplied UUID, otherwise mint a fresh one."""
    try:
        return str(uuid.UUID(value))
    except (ValueError, AttributeError):
        return str(uuid.uuid4())


def _auth_scheme(request: Request) -> str:
    if request.headers.get("authorization", "").lower().startswith("bearer "):
        return "bearer"
    if "x-api-key" in request.headers or "api_key" in request.query_params:
        return "api_key"
    return "anonymous"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Bind request_id / method / path / auth scheme into structlog contextvars."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _accept_request_id(request.headers.get(REQUEST_ID_HEADER, ""))
        path = request.url.path
        emit = log.debug if path in _QUIET_PATHS else log.info

        tokens = structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
            auth=_auth_scheme(request),
        )
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            log.exception("request.failed", duration_ms=_elapsed_ms(start))
            raise
        else:
            emit(
                "request.completed",
                status_code=response.status_code,
                duration_ms=_elapsed_ms(start),
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            structlog.contextvars.reset_contextvars(**tokens)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 1)
