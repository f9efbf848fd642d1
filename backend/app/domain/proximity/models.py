"""Domain models used by the location store and privacy zone registry."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Literal, Optional

from app.domain.proximity.geo import Point

PrivacyMode = Literal["precise", "approximate", "zone"]
PRIVACY_MODES: tuple[str, ...] = ("precise", "approximate", "zone")


@dataclass(slots=True, frozen=True)
class LocationRecord:
	"""One row of a user's append-only location log."""

	id: str
	user_id: str
	latitude: float
	longitude: float
	privacy_mode: PrivacyMode
	sharing_enabled: bool
	timestamp: datetime
	accuracy: Optional[float] = None

	@property
	def point(self) -> Point:
		return Point(self.latitude, self.longitude)

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"user_id": self.user_id,
			"latitude": self.latitude,
			"longitude": self.longitude,
			"accuracy": self.accuracy,
			"privacy_mode": self.privacy_mode,
			"sharing_enabled": self.sharing_enabled,
			"timestamp": self.timestamp.isoformat(),
		}


@dataclass(slots=True, frozen=True)
class LocationSnapshot:
	"""Point-in-time copy of a position, never a live reference."""

	latitude: float
	longitude: float
	timestamp: datetime
	accuracy: Optional[float] = None

	def to_dict(self) -> dict:
		return {
			"latitude": self.latitude,
			"longitude": self.longitude,
			"accuracy": self.accuracy,
			"timestamp": self.timestamp.isoformat(),
		}

	@classmethod
	def from_dict(cls, raw: dict) -> "LocationSnapshot":
		timestamp = raw["timestamp"]
		if isinstance(timestamp, str):
			timestamp = datetime.fromisoformat(timestamp)
		return cls(
			latitude=float(raw["latitude"]),
			longitude=float(raw["longitude"]),
			timestamp=timestamp,
			accuracy=float(raw["accuracy"]) if raw.get("accuracy") is not None else None,
		)


@dataclass(slots=True)
class PrivacyZone:
	id: str
	user_id: str
	name: str
	latitude: float
	longitude: float
	radius_m: float
	created_at: datetime
	updated_at: datetime
	hide_from_non_matches: bool = True

	@property
	def center(self) -> Point:
		return Point(self.latitude, self.longitude)

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"user_id": self.user_id,
			"name": self.name,
			"latitude": self.latitude,
			"longitude": self.longitude,
			"radius_m": self.radius_m,
			"hide_from_non_matches": self.hide_from_non_matches,
			"created_at": self.created_at.isoformat(),
			"updated_at": self.updated_at.isoformat(),
		}


@dataclass(slots=True)
class ZoneChanges:
	name: Optional[str] = None
	center: Optional[Point] = None
	radius_m: Optional[float] = None
	hide_from_non_matches: Optional[bool] = None


@dataclass(slots=True)
class SharingChanges:
	"""Metadata-only overlay applied by a sharing state update."""

	privacy_mode: Optional[PrivacyMode] = None
	sharing_enabled: Optional[bool] = None


@dataclass(slots=True)
class NearbyUser:
	user_id: str
	distance_m: int
	privacy_mode: PrivacyMode
	last_seen: datetime

	def to_dict(self) -> dict:
		return {
			"user_id": self.user_id,
			"distance_m": self.distance_m,
			"privacy_mode": self.privacy_mode,
			"last_seen": self.last_seen.isoformat(),
		}


def with_changes(zone: PrivacyZone, changes: ZoneChanges, *, now: datetime) -> PrivacyZone:
	updated = replace(zone, updated_at=now)
	if changes.name is not None:
		updated.name = changes.name
	if changes.center is not None:
		updated.latitude = changes.center.lat
		updated.longitude = changes.center.lon
	if changes.radius_m is not None:
		updated.radius_m = changes.radius_m
	if changes.hide_from_non_matches is not None:
		updated.hide_from_non_matches = changes.hide_from_non_matches
	return updated
