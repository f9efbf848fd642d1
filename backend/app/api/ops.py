"""Operations endpoints providing health checks, metrics, and admin controls."""

from __future__ import annotations

import time
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.api.deps import get_container
from app.domain.errors import Forbidden
from app.infra.auth import AuthenticatedUser, require_role
from app.obs import health
from app.obs import metrics as obs_metrics
from app.settings import settings

router = APIRouter(prefix="", tags=["ops"])


def _resolve_token(x_admin_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
	if x_admin_token:
		return x_admin_token
	if authorization and authorization.lower().startswith("bearer "):
		return authorization.split(" ", 1)[1]
	return None


async def require_metrics_access(
	x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
	authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> None:
	if settings.obs_metrics_public:
		return
	token = settings.obs_admin_token
	# no configured token means no scrape access
	if not token or _resolve_token(x_admin_token, authorization) != token:
		raise Forbidden("metrics access denied")


@router.get("/health/live")
async def health_live() -> dict:
	return await health.liveness()


@router.get("/health/ready")
async def health_ready(request: Request) -> Response:
	container = get_container(request)
	status_code, payload = await health.readiness(container.redis, container.pool)
	return JSONResponse(content=payload, status_code=status_code)


@router.get("/metrics")
async def prometheus_metrics(_: None = Depends(require_metrics_access)) -> Response:
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.post("/ops/notifications/process")
async def process_notification_queue(
	request: Request,
	_: AuthenticatedUser = Depends(require_role("admin")),
) -> dict:
	start = time.perf_counter()
	processed = await get_container(request).notifications.process_offline_queue()
	obs_metrics.record_job_run("notification_queue", result="ok", duration_seconds=time.perf_counter() - start)
	return {"processed": processed}


@router.post("/ops/locations/prune")
async def prune_locations(
	request: Request,
	_: AuthenticatedUser = Depends(require_role("admin")),
) -> dict:
	removed = await get_container(request).locations.prune_expired()
	return {"removed": removed}
