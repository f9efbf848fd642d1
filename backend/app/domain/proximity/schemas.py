"""Pydantic schemas for location and privacy zone endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from app.domain.proximity import geo
from app.domain.proximity.models import PrivacyMode, SharingChanges, ZoneChanges
from app.domain.proximity.service import MAX_NEARBY_RADIUS_M, LocationUpdate


class LocationUpdatePayload(BaseModel):
	"""Body of a full location update.

	Coordinates are optional at the schema level so a missing value surfaces
	as ``invalid_coordinates`` from the location store, like an out-of-range one.
	"""

	latitude: Optional[float] = None
	longitude: Optional[float] = None
	accuracy: Optional[float] = Field(default=None, ge=0)
	privacy_mode: Optional[PrivacyMode] = None
	sharing_enabled: Optional[bool] = None

	def to_update(self) -> LocationUpdate:
		return LocationUpdate(
			latitude=self.latitude,
			longitude=self.longitude,
			accuracy=self.accuracy,
			privacy_mode=self.privacy_mode,
			sharing_enabled=self.sharing_enabled,
		)


class SharingStatePayload(BaseModel):
	privacy_mode: Optional[PrivacyMode] = None
	sharing_enabled: Optional[bool] = None

	def to_changes(self) -> SharingChanges:
		return SharingChanges(privacy_mode=self.privacy_mode, sharing_enabled=self.sharing_enabled)


class NearbyQuery(BaseModel):
	radius_m: int = Field(default=1000, ge=1, le=MAX_NEARBY_RADIUS_M)


class ZoneCreatePayload(BaseModel):
	name: str = Field(..., min_length=1, max_length=80)
	latitude: float
	longitude: float
	radius_m: float = Field(..., gt=0)
	hide_from_non_matches: bool = True

	@property
	def center(self) -> geo.Point:
		return geo.Point(self.latitude, self.longitude)


class ZonePatchPayload(BaseModel):
	name: Optional[str] = Field(default=None, min_length=1, max_length=80)
	latitude: Optional[float] = None
	longitude: Optional[float] = None
	radius_m: Optional[float] = Field(default=None, gt=0)
	hide_from_non_matches: Optional[bool] = None

	def to_changes(self) -> ZoneChanges:
		center = None
		if self.latitude is not None or self.longitude is not None:
			center = geo.Point(self.latitude, self.longitude)  # type: ignore[arg-type]
		return ZoneChanges(
			name=self.name,
			center=center,
			radius_m=self.radius_m,
			hide_from_non_matches=self.hide_from_non_matches,
		)
