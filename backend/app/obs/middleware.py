"""ASGI middleware for request metrics and access logs."""

from __future__ import annotations

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from app.obs import logging as obs_logging
from app.obs import metrics


def _route_template(request: Request) -> str:
	route = request.scope.get("route")
	if route and getattr(route, "path", None):
		return route.path  # type: ignore[return-value]
	return request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
	"""Time every request, count it by route template and emit one access log line."""

	def __init__(self, app) -> None:
		super().__init__(app)
		self._logger = obs_logging.get_logger("disco.http")

	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		request_id = getattr(request.state, "request_id", None)
		client_ip = request.client.host if request.client else None
		token = obs_logging.bind_context(request_id=request_id, client_ip=client_ip)
		start = time.perf_counter()
		status_code = 500
		try:
			response = await call_next(request)
			status_code = response.status_code
			return response
		finally:
			elapsed = time.perf_counter() - start
			# the route is only resolved once the router has run
			route = _route_template(request)
			metrics.observe_request(route, request.method, status_code, elapsed)
			self._logger.info(
				"http_request",
				extra={
					"status": status_code,
					"method": request.method,
					"route": route,
					"latency_ms": round(elapsed * 1000, 3),
				},
			)
			obs_logging.reset_context(token)


def install(app) -> None:
	app.add_middleware(ObservabilityMiddleware)
