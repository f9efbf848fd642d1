"""Composition root: builds every service once and hands them out explicitly."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import asyncpg
import redis.asyncio as redis

from app.domain.matching.lifecycle import MatchLifecycleManager
from app.domain.matching.repository import (
	InMemoryMatchRepository,
	InMemoryPreferenceRepository,
	InMemoryProfileRepository,
	PostgresMatchRepository,
	PostgresPreferenceRepository,
	PostgresProfileRepository,
	ProfileRepository,
)
from app.domain.matching.service import MatchScoringEngine
from app.domain.notifications.push import LoggingPushTransport, PushTransport
from app.domain.notifications.repository import InMemoryNotificationRepository, PostgresNotificationRepository
from app.domain.notifications.scheduler import NotificationScheduler
from app.domain.proximity.privacy import PrivacyZoneService
from app.domain.proximity.repository import (
	InMemoryLocationRepository,
	InMemoryPrivacyZoneRepository,
	PostgresLocationRepository,
	PostgresPrivacyZoneRepository,
)
from app.domain.proximity.service import LocationService
from app.domain.realtime.hub import RealtimeHub
from app.domain.safety.repository import InMemorySafetyRepository, PostgresSafetyRepository
from app.domain.safety.service import SafetyService
from app.infra import postgres
from app.infra.rate_limit import RateLimiter
from app.infra.redis import close_client, create_client
from app.infra.tasks import DetachedTasks
from app.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


@dataclass
class Container:
	settings: Settings
	redis: redis.Redis
	pool: Optional[asyncpg.pool.Pool]
	tasks: DetachedTasks
	limiter: RateLimiter
	hub: RealtimeHub
	push: PushTransport
	zones: PrivacyZoneService
	locations: LocationService
	notifications: NotificationScheduler
	matching: MatchScoringEngine
	lifecycle: MatchLifecycleManager
	safety: SafetyService
	profiles: ProfileRepository
	owns_redis: bool = True

	async def close(self) -> None:
		await self.tasks.shutdown()
		if self.pool is not None:
			await self.pool.close()
		if self.owns_redis:
			await close_client(self.redis)


def assemble(
	cfg: Settings,
	*,
	redis_client: redis.Redis,
	pool: Optional[asyncpg.pool.Pool] = None,
	push: Optional[PushTransport] = None,
	clock: Callable[[], datetime] = _utcnow,
	owns_redis: bool = True,
) -> Container:
	"""Wire services together. ``pool`` selects Postgres storage, otherwise in-memory."""

	if pool is not None:
		location_repo = PostgresLocationRepository(pool)
		zone_repo = PostgresPrivacyZoneRepository(pool)
		match_repo = PostgresMatchRepository(pool)
		pref_repo = PostgresPreferenceRepository(pool)
		profile_repo = PostgresProfileRepository(pool)
		notification_repo = PostgresNotificationRepository(pool)
		safety_repo = PostgresSafetyRepository(pool)
	else:
		location_repo = InMemoryLocationRepository()
		zone_repo = InMemoryPrivacyZoneRepository()
		match_repo = InMemoryMatchRepository()
		pref_repo = InMemoryPreferenceRepository()
		profile_repo = InMemoryProfileRepository()
		notification_repo = InMemoryNotificationRepository()
		safety_repo = InMemorySafetyRepository()

	tasks = DetachedTasks()
	hub = RealtimeHub()
	push = push or LoggingPushTransport()
	limiter = RateLimiter(
		redis_client,
		limit=cfg.rate_limit_max_attempts,
		window_seconds=cfg.rate_limit_window_seconds,
	)
	zones = PrivacyZoneService(zone_repo, clock=clock)
	locations = LocationService(
		location_repo,
		zones,
		tasks,
		relations=match_repo,
		retention=timedelta(hours=cfg.location_retention_hours),
		clock=clock,
	)
	notifications = NotificationScheduler(notification_repo, hub, push, clock=clock)
	matching = MatchScoringEngine(
		locations,
		zones,
		match_repo,
		pref_repo,
		profile_repo,
		limiter,
		default_max_distance_km=cfg.match_default_max_distance_km,
		max_results=cfg.match_max_results,
	)
	lifecycle = MatchLifecycleManager(match_repo, matching, limiter, hub, clock=clock)
	safety = SafetyService(safety_repo, notifications, push, tasks, clock=clock)
	return Container(
		settings=cfg,
		redis=redis_client,
		pool=pool,
		tasks=tasks,
		limiter=limiter,
		hub=hub,
		push=push,
		zones=zones,
		locations=locations,
		notifications=notifications,
		matching=matching,
		lifecycle=lifecycle,
		safety=safety,
		profiles=profile_repo,
		owns_redis=owns_redis,
	)


async def build_container(cfg: Settings = default_settings) -> Container:
	"""Connect to the configured backends and assemble the services."""
	redis_client = create_client(cfg.redis_url)
	pool = None
	if cfg.storage_backend == "postgres":
		pool = await postgres.create_pool(cfg.postgres_url)
		await postgres.apply_schema(pool)
	logger.info("container ready", extra={"storage_backend": cfg.storage_backend})
	return assemble(cfg, redis_client=redis_client, pool=pool)


__all__ = ["Container", "assemble", "build_container"]
