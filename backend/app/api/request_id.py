"""Request id propagation.

Every request gets an ``X-Request-Id``: the caller's if supplied, otherwise
a fresh one. Endpoints and error handlers read it from ``request.state``.
"""

from __future__ import annotations

import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_ATTR = "request_id"
REQUEST_ID_HEADER = "X-Request-Id"


def get_request_id(request: Request, default: str = "unknown") -> str:
    return getattr(request.state, REQUEST_ID_ATTR, None) or default


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        rid = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        setattr(request.state, REQUEST_ID_ATTR, rid)
        response = await call_next(request)
        if REQUEST_ID_HEADER not in response.headers:
            response.headers[REQUEST_ID_HEADER] = rid
        return response
