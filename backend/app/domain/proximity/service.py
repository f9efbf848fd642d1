"""Location store: append-only per-user location log with 24h retention."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, FrozenSet, List, Optional, Protocol

import ulid

from app.domain.errors import InvalidCoordinates, NotFound, ValidationError
from app.domain.proximity import geo
from app.domain.proximity.models import (
	PRIVACY_MODES,
	LocationRecord,
	NearbyUser,
	PrivacyMode,
	SharingChanges,
)
from app.domain.proximity.privacy import PrivacyZoneService, visibility
from app.domain.proximity.repository import LocationRepository
from app.infra.tasks import DetachedTasks
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

PRECISE_BUCKET_M = 10
COARSE_BUCKET_M = 1000
MAX_NEARBY_RADIUS_M = 50_000


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class Relations:
	"""Users a viewer has an accepted match with, and users either side blocked."""

	matched: FrozenSet[str] = field(default_factory=frozenset)
	blocked: FrozenSet[str] = field(default_factory=frozenset)


class RelationsProvider(Protocol):
	async def relations(self, user_id: str) -> Relations:
		...


class _NoRelations:
	async def relations(self, user_id: str) -> Relations:
		return Relations()


@dataclass(slots=True)
class LocationUpdate:
	"""Canonical input for recording a position.

	``privacy_mode`` and ``sharing_enabled`` default to the values on the
	user's current record, or ``precise`` / sharing on for a first fix.
	"""

	latitude: Optional[float]
	longitude: Optional[float]
	accuracy: Optional[float] = None
	privacy_mode: Optional[PrivacyMode] = None
	sharing_enabled: Optional[bool] = None


def _check_mode(mode: Optional[str]) -> None:
	if mode is not None and mode not in PRIVACY_MODES:
		raise ValidationError(f"privacy mode must be one of {', '.join(PRIVACY_MODES)}")


class LocationService:
	def __init__(
		self,
		repository: LocationRepository,
		zones: PrivacyZoneService,
		tasks: DetachedTasks,
		*,
		relations: Optional[RelationsProvider] = None,
		retention: timedelta = timedelta(hours=24),
		clock: Callable[[], datetime] = _utcnow,
	) -> None:
		self._repo = repository
		self._zones = zones
		self._tasks = tasks
		self._relations = relations or _NoRelations()
		self.retention = retention
		self._clock = clock

	def _cutoff(self, now: Optional[datetime] = None) -> datetime:
		return (now or self._clock()) - self.retention

	async def record_location(self, user_id: str, update: LocationUpdate) -> LocationRecord:
		if not geo.valid_coordinates(update.latitude, update.longitude):
			raise InvalidCoordinates()
		if update.accuracy is not None and update.accuracy < 0:
			raise ValidationError("accuracy must be non-negative")
		_check_mode(update.privacy_mode)
		now = self._clock()
		previous = None
		if update.privacy_mode is None or update.sharing_enabled is None:
			previous = await self._repo.latest(user_id, since=self._cutoff(now))
		record = LocationRecord(
			id=ulid.new().str,
			user_id=user_id,
			latitude=float(update.latitude),
			longitude=float(update.longitude),
			accuracy=update.accuracy,
			privacy_mode=update.privacy_mode or (previous.privacy_mode if previous else "precise"),
			sharing_enabled=(
				update.sharing_enabled
				if update.sharing_enabled is not None
				else (previous.sharing_enabled if previous else True)
			),
			timestamp=now,
		)
		await self._repo.append(record)
		obs_metrics.location_recorded("update")
		self._tasks.spawn(self._prune(user_id, self._cutoff(now)), name=f"location-prune:{user_id}")
		return record

	async def _prune(self, user_id: str, cutoff: datetime) -> None:
		removed = await self._repo.prune_user(user_id, older_than=cutoff)
		if removed:
			obs_metrics.locations_pruned(removed)
			logger.debug("pruned expired locations", extra={"user": user_id, "removed": removed})

	async def prune_expired(self) -> int:
		"""Global retention sweep; run on a schedule."""
		removed = await self._repo.prune_all(older_than=self._cutoff())
		obs_metrics.locations_pruned(removed)
		logger.info("location retention sweep", extra={"removed": removed})
		return removed

	async def get_current_location(self, user_id: str) -> LocationRecord:
		record = await self._repo.latest(user_id, since=self._cutoff())
		if record is None:
			raise NotFound("no current location")
		return record

	async def find_current_location(self, user_id: str) -> Optional[LocationRecord]:
		return await self._repo.latest(user_id, since=self._cutoff())

	async def update_sharing_state(self, user_id: str, changes: SharingChanges) -> LocationRecord:
		"""Append a copy of the current row with privacy metadata overlaid."""
		_check_mode(changes.privacy_mode)
		current = await self.get_current_location(user_id)
		record = LocationRecord(
			id=ulid.new().str,
			user_id=user_id,
			latitude=current.latitude,
			longitude=current.longitude,
			accuracy=current.accuracy,
			privacy_mode=changes.privacy_mode or current.privacy_mode,
			sharing_enabled=(
				changes.sharing_enabled if changes.sharing_enabled is not None else current.sharing_enabled
			),
			timestamp=self._clock(),
		)
		await self._repo.append(record)
		obs_metrics.location_recorded("state")
		return record

	async def current_in_radius(
		self,
		user_id: str,
		origin: geo.Point,
		radius_m: float,
	) -> List[tuple[LocationRecord, float]]:
		"""Other users' current records within ``radius_m``, with distance in km.

		Rows come from a bounding box query and are refined with haversine.
		"""

		box = geo.bounding_box(origin.lat, origin.lon, radius_m)
		rows = await self._repo.current_in_box(box, since=self._cutoff(), exclude_user_id=user_id)
		results: List[tuple[LocationRecord, float]] = []
		for record in rows:
			if not record.sharing_enabled:
				continue
			distance = geo.distance_km(origin.lat, origin.lon, record.latitude, record.longitude)
			if distance * 1000 > radius_m:
				continue
			results.append((record, distance))
		return results

	async def get_nearby_users(self, user_id: str, radius_m: float) -> List[NearbyUser]:
		if not 0 < radius_m <= MAX_NEARBY_RADIUS_M:
			raise ValidationError(f"radius must be between 1 and {MAX_NEARBY_RADIUS_M} meters")
		me = await self.get_current_location(user_id)
		candidates = await self.current_in_radius(user_id, me.point, radius_m)
		relations = await self._relations.relations(user_id)
		zones = await self._zones.zones_for(rec.user_id for rec, _ in candidates)
		nearby: List[NearbyUser] = []
		for record, distance in candidates:
			if record.user_id in relations.blocked:
				continue
			seen = visibility(
				record,
				zones.get(record.user_id, []),
				viewer_is_match=record.user_id in relations.matched,
			)
			if seen == "hidden":
				continue
			bucket = COARSE_BUCKET_M if seen == "coarse" else PRECISE_BUCKET_M
			nearby.append(
				NearbyUser(
					user_id=record.user_id,
					distance_m=geo.round_up_to_bucket(distance * 1000, bucket),
					privacy_mode=record.privacy_mode,
					last_seen=record.timestamp,
				)
			)
		nearby.sort(key=lambda item: (item.distance_m, item.user_id))
		obs_metrics.nearby_query(len(nearby))
		return nearby
