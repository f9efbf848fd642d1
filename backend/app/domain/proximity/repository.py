"""Persistence for location records and privacy zones."""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol

import asyncpg

from app.domain.proximity.geo import BoundingBox
from app.domain.proximity.models import LocationRecord, PrivacyZone


class LocationRepository(Protocol):
	async def append(self, record: LocationRecord) -> LocationRecord:
		...

	async def latest(self, user_id: str, *, since: datetime) -> Optional[LocationRecord]:
		...

	async def current_in_box(
		self,
		box: BoundingBox,
		*,
		since: datetime,
		exclude_user_id: Optional[str] = None,
	) -> List[LocationRecord]:
		...

	async def prune_user(self, user_id: str, *, older_than: datetime) -> int:
		...

	async def prune_all(self, *, older_than: datetime) -> int:
		...


class PrivacyZoneRepository(Protocol):
	async def add(self, zone: PrivacyZone) -> PrivacyZone:
		...

	async def get(self, zone_id: str) -> Optional[PrivacyZone]:
		...

	async def list_for_user(self, user_id: str) -> List[PrivacyZone]:
		...

	async def list_for_users(self, user_ids: Iterable[str]) -> Dict[str, List[PrivacyZone]]:
		...

	async def update(self, zone: PrivacyZone) -> PrivacyZone:
		...

	async def delete(self, zone_id: str) -> bool:
		...


@dataclass
class InMemoryLocationRepository:
	"""Append-only log per user; ties on timestamp resolve by insertion order."""

	_rows: Dict[str, List[tuple[int, LocationRecord]]] = field(default_factory=dict)
	_seq: itertools.count = field(default_factory=lambda: itertools.count(1))
	_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

	async def append(self, record: LocationRecord) -> LocationRecord:
		async with self._lock:
			self._rows.setdefault(record.user_id, []).append((next(self._seq), record))
		return record

	def _latest_unlocked(self, user_id: str, since: datetime) -> Optional[LocationRecord]:
		rows = [(rec.timestamp, seq, rec) for seq, rec in self._rows.get(user_id, []) if rec.timestamp >= since]
		if not rows:
			return None
		return max(rows, key=lambda item: (item[0], item[1]))[2]

	async def latest(self, user_id: str, *, since: datetime) -> Optional[LocationRecord]:
		async with self._lock:
			return self._latest_unlocked(user_id, since)

	async def current_in_box(
		self,
		box: BoundingBox,
		*,
		since: datetime,
		exclude_user_id: Optional[str] = None,
	) -> List[LocationRecord]:
		async with self._lock:
			current = [self._latest_unlocked(user_id, since) for user_id in self._rows if user_id != exclude_user_id]
		return [rec for rec in current if rec is not None and box.contains(rec.latitude, rec.longitude)]

	async def prune_user(self, user_id: str, *, older_than: datetime) -> int:
		async with self._lock:
			rows = self._rows.get(user_id, [])
			kept = [(seq, rec) for seq, rec in rows if rec.timestamp >= older_than]
			self._rows[user_id] = kept
			return len(rows) - len(kept)

	async def prune_all(self, *, older_than: datetime) -> int:
		removed = 0
		for user_id in list(self._rows):
			removed += await self.prune_user(user_id, older_than=older_than)
		return removed


@dataclass
class InMemoryPrivacyZoneRepository:
	_zones: Dict[str, PrivacyZone] = field(default_factory=dict)
	_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

	async def add(self, zone: PrivacyZone) -> PrivacyZone:
		async with self._lock:
			self._zones[zone.id] = replace(zone)
		return zone

	async def get(self, zone_id: str) -> Optional[PrivacyZone]:
		async with self._lock:
			zone = self._zones.get(zone_id)
			return replace(zone) if zone else None

	async def list_for_user(self, user_id: str) -> List[PrivacyZone]:
		async with self._lock:
			zones = [replace(z) for z in self._zones.values() if z.user_id == user_id]
		return sorted(zones, key=lambda z: z.created_at)

	async def list_for_users(self, user_ids: Iterable[str]) -> Dict[str, List[PrivacyZone]]:
		wanted = set(user_ids)
		result: Dict[str, List[PrivacyZone]] = {}
		async with self._lock:
			for zone in self._zones.values():
				if zone.user_id in wanted:
					result.setdefault(zone.user_id, []).append(replace(zone))
		return result

	async def update(self, zone: PrivacyZone) -> PrivacyZone:
		async with self._lock:
			self._zones[zone.id] = replace(zone)
		return zone

	async def delete(self, zone_id: str) -> bool:
		async with self._lock:
			return self._zones.pop(zone_id, None) is not None


def _location_from_row(row: asyncpg.Record) -> LocationRecord:
	return LocationRecord(
		id=row["id"],
		user_id=row["user_id"],
		latitude=float(row["latitude"]),
		longitude=float(row["longitude"]),
		accuracy=float(row["accuracy"]) if row["accuracy"] is not None else None,
		privacy_mode=row["privacy_mode"],
		sharing_enabled=bool(row["sharing_enabled"]),
		timestamp=row["recorded_at"],
	)


def _zone_from_row(row: asyncpg.Record) -> PrivacyZone:
	return PrivacyZone(
		id=row["id"],
		user_id=row["user_id"],
		name=row["name"],
		latitude=float(row["latitude"]),
		longitude=float(row["longitude"]),
		radius_m=float(row["radius_m"]),
		hide_from_non_matches=bool(row["hide_from_non_matches"]),
		created_at=row["created_at"],
		updated_at=row["updated_at"],
	)


_LOCATION_COLUMNS = "id, user_id, latitude, longitude, accuracy, privacy_mode, sharing_enabled, recorded_at"
_ZONE_COLUMNS = "id, user_id, name, latitude, longitude, radius_m, hide_from_non_matches, created_at, updated_at"


class PostgresLocationRepository:
	def __init__(self, pool: asyncpg.pool.Pool) -> None:
		self._pool = pool

	async def append(self, record: LocationRecord) -> LocationRecord:
		async with self._pool.acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO location_records (id, user_id, latitude, longitude, accuracy, privacy_mode, sharing_enabled, recorded_at)
				VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
				""",
				record.id,
				record.user_id,
				record.latitude,
				record.longitude,
				record.accuracy,
				record.privacy_mode,
				record.sharing_enabled,
				record.timestamp,
			)
		return record

	async def latest(self, user_id: str, *, since: datetime) -> Optional[LocationRecord]:
		async with self._pool.acquire() as conn:
			row = await conn.fetchrow(
				f"""
				SELECT {_LOCATION_COLUMNS}
				FROM location_records
				WHERE user_id = $1 AND recorded_at >= $2
				ORDER BY recorded_at DESC, seq DESC
				LIMIT 1
				""",
				user_id,
				since,
			)
		return _location_from_row(row) if row else None

	async def current_in_box(
		self,
		box: BoundingBox,
		*,
		since: datetime,
		exclude_user_id: Optional[str] = None,
	) -> List[LocationRecord]:
		async with self._pool.acquire() as conn:
			rows = await conn.fetch(
				f"""
				SELECT {_LOCATION_COLUMNS} FROM (
					SELECT DISTINCT ON (user_id) {_LOCATION_COLUMNS}
					FROM location_records
					WHERE recorded_at >= $1 AND ($6::text IS NULL OR user_id <> $6)
					ORDER BY user_id, recorded_at DESC, seq DESC
				) current
				WHERE latitude BETWEEN $2 AND $3 AND longitude BETWEEN $4 AND $5
				""",
				since,
				box.min_lat,
				box.max_lat,
				box.min_lon,
				box.max_lon,
				exclude_user_id,
			)
		return [_location_from_row(row) for row in rows]

	async def prune_user(self, user_id: str, *, older_than: datetime) -> int:
		async with self._pool.acquire() as conn:
			result = await conn.execute(
				"DELETE FROM location_records WHERE user_id = $1 AND recorded_at < $2",
				user_id,
				older_than,
			)
		return _affected(result)

	async def prune_all(self, *, older_than: datetime) -> int:
		async with self._pool.acquire() as conn:
			result = await conn.execute("DELETE FROM location_records WHERE recorded_at < $1", older_than)
		return _affected(result)


class PostgresPrivacyZoneRepository:
	def __init__(self, pool: asyncpg.pool.Pool) -> None:
		self._pool = pool

	async def add(self, zone: PrivacyZone) -> PrivacyZone:
		async with self._pool.acquire() as conn:
			await conn.execute(
				f"""
				INSERT INTO privacy_zones ({_ZONE_COLUMNS})
				VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
				""",
				zone.id,
				zone.user_id,
				zone.name,
				zone.latitude,
				zone.longitude,
				zone.radius_m,
				zone.hide_from_non_matches,
				zone.created_at,
				zone.updated_at,
			)
		return zone

	async def get(self, zone_id: str) -> Optional[PrivacyZone]:
		async with self._pool.acquire() as conn:
			row = await conn.fetchrow(f"SELECT {_ZONE_COLUMNS} FROM privacy_zones WHERE id = $1", zone_id)
		return _zone_from_row(row) if row else None

	async def list_for_user(self, user_id: str) -> List[PrivacyZone]:
		async with self._pool.acquire() as conn:
			rows = await conn.fetch(
				f"SELECT {_ZONE_COLUMNS} FROM privacy_zones WHERE user_id = $1 ORDER BY created_at",
				user_id,
			)
		return [_zone_from_row(row) for row in rows]

	async def list_for_users(self, user_ids: Iterable[str]) -> Dict[str, List[PrivacyZone]]:
		ids = list(user_ids)
		if not ids:
			return {}
		async with self._pool.acquire() as conn:
			rows = await conn.fetch(
				f"SELECT {_ZONE_COLUMNS} FROM privacy_zones WHERE user_id = ANY($1::text[])",
				ids,
			)
		result: Dict[str, List[PrivacyZone]] = {}
		for row in rows:
			zone = _zone_from_row(row)
			result.setdefault(zone.user_id, []).append(zone)
		return result

	async def update(self, zone: PrivacyZone) -> PrivacyZone:
		async with self._pool.acquire() as conn:
			await conn.execute(
				"""
				UPDATE privacy_zones
				SET name = $2, latitude = $3, longitude = $4, radius_m = $5,
					hide_from_non_matches = $6, updated_at = $7
				WHERE id = $1
				""",
				zone.id,
				zone.name,
				zone.latitude,
				zone.longitude,
				zone.radius_m,
				zone.hide_from_non_matches,
				zone.updated_at,
			)
		return zone

	async def delete(self, zone_id: str) -> bool:
		async with self._pool.acquire() as conn:
			result = await conn.execute("DELETE FROM privacy_zones WHERE id = $1", zone_id)
		return _affected(result) > 0


def _affected(status: str) -> int:
	"""Parse the row count out of an asyncpg command tag such as ``DELETE 3``."""
	try:
		return int(status.rsplit(" ", 1)[-1])
	except (ValueError, AttributeError):
		return 0
