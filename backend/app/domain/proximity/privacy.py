"""Privacy zone registry and the visibility rules built on it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Literal, Optional, Sequence

import ulid

from app.domain.errors import Forbidden, InvalidCoordinates, NotFound, ValidationError
from app.domain.proximity import geo
from app.domain.proximity.models import LocationRecord, PrivacyZone, ZoneChanges, with_changes
from app.domain.proximity.repository import PrivacyZoneRepository

logger = logging.getLogger(__name__)

Visibility = Literal["hidden", "coarse", "precise"]

MAX_ZONE_NAME = 80


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


@dataclass(slots=True)
class ZoneResult:
	zone: PrivacyZone
	overlaps: bool

	def to_dict(self) -> dict:
		return {"zone": self.zone.to_dict(), "overlaps": self.overlaps}


def _validate_zone(name: Optional[str], center: Optional[geo.Point], radius_m: Optional[float]) -> None:
	if name is not None and not (0 < len(name.strip()) <= MAX_ZONE_NAME):
		raise ValidationError("zone name must be 1-80 characters")
	if center is not None and not geo.valid_coordinates(center.lat, center.lon):
		raise InvalidCoordinates()
	if radius_m is not None and not radius_m > 0:
		raise ValidationError("radius must be greater than zero")


def zones_containing(point: geo.Point, zones: Iterable[PrivacyZone]) -> List[PrivacyZone]:
	return [zone for zone in zones if geo.is_within_zone(point, zone.center, zone.radius_m)]


def visibility(record: LocationRecord, zones: Sequence[PrivacyZone], *, viewer_is_match: bool) -> Visibility:
	"""Decide how much of ``record`` its owner exposes to a viewer.

	``zones`` are the owner's own zones. A position inside a hiding zone is
	invisible to non-matches, and ``zone`` privacy mode hides the owner from
	everyone while inside any zone. Other zone hits and ``approximate`` mode
	only coarsen the reported distance.
	"""

	if not record.sharing_enabled:
		return "hidden"
	hits = zones_containing(record.point, zones)
	if hits and record.privacy_mode == "zone":
		return "hidden"
	if any(zone.hide_from_non_matches for zone in hits) and not viewer_is_match:
		return "hidden"
	if hits or record.privacy_mode == "approximate":
		return "coarse"
	return "precise"


class PrivacyZoneService:
	def __init__(
		self,
		repository: PrivacyZoneRepository,
		*,
		clock: Callable[[], datetime] = _utcnow,
	) -> None:
		self._repo = repository
		self._clock = clock

	async def create_zone(
		self,
		user_id: str,
		name: str,
		center: geo.Point,
		radius_m: float,
		*,
		hide_from_non_matches: bool = True,
	) -> ZoneResult:
		_validate_zone(name, center, radius_m)
		overlaps = await self.check_overlap(user_id, center, radius_m)
		now = self._clock()
		zone = PrivacyZone(
			id=ulid.new().str,
			user_id=user_id,
			name=name.strip(),
			latitude=center.lat,
			longitude=center.lon,
			radius_m=float(radius_m),
			hide_from_non_matches=hide_from_non_matches,
			created_at=now,
			updated_at=now,
		)
		await self._repo.add(zone)
		if overlaps:
			logger.info("privacy zone overlaps existing zone", extra={"zone_id": zone.id})
		return ZoneResult(zone=zone, overlaps=overlaps)

	async def check_overlap(
		self,
		user_id: str,
		center: geo.Point,
		radius_m: float,
		*,
		exclude_zone_id: Optional[str] = None,
	) -> bool:
		"""Report whether the circle intersects any of the user's other zones."""
		for zone in await self._repo.list_for_user(user_id):
			if zone.id == exclude_zone_id:
				continue
			if geo.circles_overlap(center, radius_m, zone.center, zone.radius_m):
				return True
		return False

	async def list_zones(self, user_id: str) -> List[PrivacyZone]:
		return await self._repo.list_for_user(user_id)

	async def _owned(self, user_id: str, zone_id: str) -> PrivacyZone:
		zone = await self._repo.get(zone_id)
		if zone is None:
			raise NotFound("privacy zone not found")
		if zone.user_id != user_id:
			raise Forbidden("privacy zone belongs to another user")
		return zone

	async def update_zone(self, user_id: str, zone_id: str, changes: ZoneChanges) -> ZoneResult:
		_validate_zone(changes.name, changes.center, changes.radius_m)
		zone = await self._owned(user_id, zone_id)
		updated = with_changes(zone, changes, now=self._clock())
		overlaps = await self.check_overlap(user_id, updated.center, updated.radius_m, exclude_zone_id=zone_id)
		await self._repo.update(updated)
		return ZoneResult(zone=updated, overlaps=overlaps)

	async def delete_zone(self, user_id: str, zone_id: str) -> None:
		await self._owned(user_id, zone_id)
		await self._repo.delete(zone_id)

	async def contains(self, user_id: str, point: geo.Point) -> List[PrivacyZone]:
		return zones_containing(point, await self._repo.list_for_user(user_id))

	async def zones_for(self, user_ids: Iterable[str]) -> dict[str, List[PrivacyZone]]:
		return await self._repo.list_for_users(user_ids)
