"""Pure geographic helpers used by location, privacy and matching code."""

from __future__ import annotations

import math
from dataclasses import dataclass

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.0


@dataclass(slots=True, frozen=True)
class Point:
	lat: float
	lon: float


@dataclass(slots=True, frozen=True)
class BoundingBox:
	min_lat: float
	max_lat: float
	min_lon: float
	max_lon: float

	def contains(self, lat: float, lon: float) -> bool:
		return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
	"""Return the great-circle distance between two points in kilometres."""

	phi1, phi2 = math.radians(lat1), math.radians(lat2)
	dphi = math.radians(lat2 - lat1)
	dlambda = math.radians(lon2 - lon1)
	a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
	return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bounding_box(lat: float, lon: float, radius_m: float) -> BoundingBox:
	"""Return a lat/lon rectangle enclosing every point within ``radius_m``.

	The box is a superset of the circle and is only meant as a cheap pre-filter
	ahead of exact haversine checks.
	"""

	radius_km = max(radius_m, 0.0) / 1000.0
	lat_delta = radius_km / KM_PER_DEGREE_LAT
	cos_lat = math.cos(math.radians(lat))
	if cos_lat <= 1e-12:
		lon_delta = 180.0
	else:
		lon_delta = min(radius_km / (KM_PER_DEGREE_LAT * cos_lat), 180.0)
	return BoundingBox(
		min_lat=lat - lat_delta,
		max_lat=lat + lat_delta,
		min_lon=lon - lon_delta,
		max_lon=lon + lon_delta,
	)


def is_within_zone(point: Point, center: Point, radius_m: float) -> bool:
	return distance_km(point.lat, point.lon, center.lat, center.lon) * 1000 <= radius_m


def circles_overlap(a: Point, radius_a_m: float, b: Point, radius_b_m: float) -> bool:
	return distance_km(a.lat, a.lon, b.lat, b.lon) * 1000 < radius_a_m + radius_b_m


def round_up_to_bucket(distance: float, bucket: int) -> int:
	if bucket <= 0:
		return int(distance)
	return int(math.ceil(max(distance, 0.0) / bucket) * bucket)


def valid_coordinates(lat: float | None, lon: float | None) -> bool:
	if lat is None or lon is None:
		return False
	if math.isnan(lat) or math.isnan(lon):
		return False
	return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0
