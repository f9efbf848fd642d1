"""Global error handlers mapping domain failures to JSON responses.

Every error body has the same shape: ``{"detail": <code>, "message": ...,
"request_id": ...}`` so clients can branch on ``detail``.
"""

from __future__ import annotations

import logging

import asyncpg
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.exceptions import ConnectionError as RedisConnectionError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.request_id import get_request_id
from app.domain.errors import CoreError, RateLimited

logger = logging.getLogger(__name__)

_UNAVAILABLE = (asyncpg.PostgresConnectionError, asyncpg.InterfaceError, RedisConnectionError, OSError)


def _body(request: Request, code: str, message: str, **extra) -> dict:
    payload = {"detail": code, "message": message, "request_id": get_request_id(request)}
    payload.update(extra)
    return payload


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CoreError)
    async def core_error_handler(request: Request, exc: CoreError):  # type: ignore[override]
        headers = None
        if isinstance(exc, RateLimited):
            headers = {"Retry-After": str(exc.retry_after)}
        if exc.status_code >= 500:
            logger.error("request failed", extra={"code": exc.code, "path": request.url.path})
        return JSONResponse(
            status_code=exc.status_code,
            content=_body(request, exc.code, exc.message),
            headers=headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        return JSONResponse(
            status_code=exc.status_code,
            content=_body(request, str(exc.detail), str(exc.detail)),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=_body(request, "validation_error", "request failed validation", errors=errors),
        )

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):  # type: ignore[override]
        if isinstance(exc, _UNAVAILABLE):
            logger.warning("dependency unavailable", exc_info=exc, extra={"path": request.url.path})
            return JSONResponse(status_code=503, content=_body(request, "unavailable", "service unavailable"))
        logger.exception("unhandled error", exc_info=exc, extra={"path": request.url.path})
        return JSONResponse(status_code=500, content=_body(request, "internal", "internal server error"))
