"""Exception handlers — every error leaves the API as ``{"detail": "..."}``."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from packsafe.dao.base import InvalidCursorError
from packsafe.services import ServiceError

log = structlog.get_logger("packsafe.api")


def _detail(status_code: int, detail: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail}, headers=headers)


async def _service_error(_request: Request, exc: ServiceError) -> JSONResponse:
    log.info("request.rejected", status_code=exc.status_code, error=type(exc).__name__)
    # RFC 7235: a 401 names the scheme the client should retry with
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return _detail(exc.status_code, str(exc), headers)


async def _request_validation(_request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for err in exc.errors():
        # drop the "body" / "query" prefix: "packageJson: Field required"
        loc = [str(part) for part in err["loc"][1:]] or [str(err["loc"][0])]
        problems.append(f"{'.'.join(loc)}: {err['msg']}")
    return _detail(422, "; ".join(problems))


async def _bad_cursor(_request: Request, exc: InvalidCursorError) -> JSONResponse:
    return _detail(400, f"invalid history cursor: {exc}")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, _service_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation)  # type: ignore[arg-type]
    app.add_exception_handler(InvalidCursorError, _bad_cursor)  # type: ignore[arg-type]
