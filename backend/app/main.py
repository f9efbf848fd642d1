from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional, Sequence

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from app.api import location, matches, notifications, ops, privacy, safety
from app.api.errors import install_error_handlers
from app.api.request_id import RequestIdMiddleware
from app.container import Container, build_container
from app.domain.realtime.events import EventType
from app.domain.realtime.sockets import RealtimeNamespace
from app.infra.scheduler import JobScheduler
from app.obs import init as obs_init
from app.settings import settings

logger = logging.getLogger(__name__)


def _allow_origins() -> list[str]:
	origins = settings.cors_origins()
	# Starlette disallows wildcard '*' with allow_credentials=True
	if not origins or "*" in origins:
		if settings.is_dev():
			return ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"]
		return ["https://app.disco.example"]
	return origins


def wire_realtime(sio: socketio.AsyncServer, container: Container) -> RealtimeNamespace:
	"""Register the realtime namespace and point the hub at it."""

	async def publish(event: EventType, payload: BaseModel, user_ids: Sequence[str]) -> None:
		await container.hub.publish(event, payload, user_ids=user_ids)

	namespace = RealtimeNamespace(container.lifecycle.participants, publish)
	sio.register_namespace(namespace)
	container.hub.bind(namespace)
	return namespace


def start_jobs(container: Container) -> JobScheduler:
	scheduler = JobScheduler()
	scheduler.start()
	scheduler.schedule_every(
		"notification-queue",
		container.notifications.process_offline_queue,
		seconds=container.settings.notification_queue_interval_seconds,
	)
	scheduler.schedule_every(
		"location-retention",
		container.locations.prune_expired,
		seconds=container.settings.location_prune_interval_seconds,
	)
	return scheduler


def create_app(container: Optional[Container] = None) -> FastAPI:
	"""Build the HTTP app.

	A supplied ``container`` is used as-is and left open on shutdown; otherwise
	one is built from settings when the app starts.
	"""

	allow_origins = _allow_origins()
	sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)

	@asynccontextmanager
	async def lifespan(app: FastAPI):
		owned = app.state.container is None
		if owned:
			app.state.container = await build_container(settings)
			wire_realtime(sio, app.state.container)
		scheduler: JobScheduler | None = None
		if settings.scheduler_enabled and owned:
			scheduler = start_jobs(app.state.container)
		try:
			yield
		finally:
			if scheduler is not None:
				scheduler.shutdown()
			if owned:
				await app.state.container.close()
				app.state.container = None

	app = FastAPI(title="Disco Core", lifespan=lifespan)
	app.state.container = container
	app.state.sio = sio
	if container is not None:
		wire_realtime(sio, container)

	install_error_handlers(app)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=allow_origins,
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)
	obs_init(app)
	# outermost, so the access log sees the request id
	app.add_middleware(RequestIdMiddleware)

	app.include_router(location.router)
	app.include_router(privacy.router)
	app.include_router(matches.router)
	app.include_router(safety.router)
	app.include_router(notifications.router)
	app.include_router(ops.router)
	return app


app = create_app()
socket_app = socketio.ASGIApp(app.state.sio, other_asgi_app=app)
