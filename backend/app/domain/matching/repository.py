"""Persistence for matches, reports, preferences and candidate profiles."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol

import asyncpg

from app.domain.matching.models import (
	CandidateProfile,
	Match,
	MatchPreferences,
	MatchReport,
)
from app.domain.proximity.service import Relations


class MatchRepository(Protocol):
	async def create(self, match: Match) -> Match:
		...

	async def get(self, match_id: str) -> Optional[Match]:
		...

	async def find_between(self, user_a: str, user_b: str) -> Optional[Match]:
		...

	async def list_for_user(self, user_id: str, *, status: Optional[str] = None) -> List[Match]:
		...

	async def compare_and_set(
		self,
		match_id: str,
		*,
		expected_version: int,
		status: str,
		now: datetime,
	) -> Optional[Match]:
		"""Apply ``status`` only if the stored version still equals ``expected_version``."""
		...

	async def add_report(self, report: MatchReport) -> MatchReport:
		...

	async def relations(self, user_id: str) -> Relations:
		...


class PreferenceRepository(Protocol):
	async def get(self, user_id: str) -> Optional[MatchPreferences]:
		...

	async def get_many(self, user_ids: Iterable[str]) -> Dict[str, MatchPreferences]:
		...

	async def save(self, user_id: str, prefs: MatchPreferences) -> MatchPreferences:
		...


class ProfileRepository(Protocol):
	async def get_many(self, user_ids: Iterable[str]) -> Dict[str, CandidateProfile]:
		...


def _relations(user_id: str, matches: Iterable[Match]) -> Relations:
	matched: set[str] = set()
	blocked: set[str] = set()
	for match in matches:
		if not match.involves(user_id):
			continue
		other = match.other(user_id)
		if match.status == "accepted":
			matched.add(other)
		elif match.status == "blocked":
			blocked.add(other)
	return Relations(matched=frozenset(matched), blocked=frozenset(blocked))


@dataclass
class InMemoryMatchRepository:
	matches: Dict[str, Match] = field(default_factory=dict)
	reports: List[MatchReport] = field(default_factory=list)
	_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

	async def create(self, match: Match) -> Match:
		async with self._lock:
			self.matches[match.id] = replace(match)
		return match

	async def get(self, match_id: str) -> Optional[Match]:
		async with self._lock:
			match = self.matches.get(match_id)
			return replace(match) if match else None

	async def find_between(self, user_a: str, user_b: str) -> Optional[Match]:
		pair = {user_a, user_b}
		async with self._lock:
			found = [m for m in self.matches.values() if set(m.participants) == pair]
			if not found:
				return None
			return replace(max(found, key=lambda m: m.created_at))

	async def list_for_user(self, user_id: str, *, status: Optional[str] = None) -> List[Match]:
		async with self._lock:
			rows = [
				replace(m)
				for m in self.matches.values()
				if m.involves(user_id) and (status is None or m.status == status)
			]
		return sorted(rows, key=lambda m: m.updated_at, reverse=True)

	async def compare_and_set(
		self,
		match_id: str,
		*,
		expected_version: int,
		status: str,
		now: datetime,
	) -> Optional[Match]:
		async with self._lock:
			match = self.matches.get(match_id)
			if match is None or match.version != expected_version:
				return None
			match.status = status  # type: ignore[assignment]
			match.version += 1
			match.updated_at = now
			return replace(match)

	async def add_report(self, report: MatchReport) -> MatchReport:
		async with self._lock:
			self.reports.append(report)
		return report

	async def relations(self, user_id: str) -> Relations:
		async with self._lock:
			return _relations(user_id, list(self.matches.values()))


@dataclass
class InMemoryPreferenceRepository:
	prefs: Dict[str, MatchPreferences] = field(default_factory=dict)

	async def get(self, user_id: str) -> Optional[MatchPreferences]:
		prefs = self.prefs.get(user_id)
		return prefs.model_copy(deep=True) if prefs else None

	async def get_many(self, user_ids: Iterable[str]) -> Dict[str, MatchPreferences]:
		return {uid: self.prefs[uid].model_copy(deep=True) for uid in user_ids if uid in self.prefs}

	async def save(self, user_id: str, prefs: MatchPreferences) -> MatchPreferences:
		self.prefs[user_id] = prefs.model_copy(deep=True)
		return prefs


@dataclass
class InMemoryProfileRepository:
	profiles: Dict[str, CandidateProfile] = field(default_factory=dict)

	def put(self, profile: CandidateProfile) -> None:
		self.profiles[profile.user_id] = profile

	async def get_many(self, user_ids: Iterable[str]) -> Dict[str, CandidateProfile]:
		return {uid: self.profiles[uid] for uid in user_ids if uid in self.profiles}


_MATCH_COLUMNS = "id, user_id, matched_user_id, status, score, version, created_at, updated_at"


def _match(row: asyncpg.Record) -> Match:
	return Match(
		id=row["id"],
		user_id=row["user_id"],
		matched_user_id=row["matched_user_id"],
		status=row["status"],
		score=int(row["score"]),
		version=int(row["version"]),
		created_at=row["created_at"],
		updated_at=row["updated_at"],
	)


class PostgresMatchRepository:
	def __init__(self, pool: asyncpg.pool.Pool) -> None:
		self._pool = pool

	async def create(self, match: Match) -> Match:
		async with self._pool.acquire() as conn:
			await conn.execute(
				f"INSERT INTO matches ({_MATCH_COLUMNS}) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)",
				match.id,
				match.user_id,
				match.matched_user_id,
				match.status,
				match.score,
				match.version,
				match.created_at,
				match.updated_at,
			)
		return match

	async def get(self, match_id: str) -> Optional[Match]:
		async with self._pool.acquire() as conn:
			row = await conn.fetchrow(f"SELECT {_MATCH_COLUMNS} FROM matches WHERE id = $1", match_id)
		return _match(row) if row else None

	async def find_between(self, user_a: str, user_b: str) -> Optional[Match]:
		async with self._pool.acquire() as conn:
			row = await conn.fetchrow(
				f"""
				SELECT {_MATCH_COLUMNS} FROM matches
				WHERE (user_id = $1 AND matched_user_id = $2) OR (user_id = $2 AND matched_user_id = $1)
				ORDER BY created_at DESC
				LIMIT 1
				""",
				user_a,
				user_b,
			)
		return _match(row) if row else None

	async def list_for_user(self, user_id: str, *, status: Optional[str] = None) -> List[Match]:
		async with self._pool.acquire() as conn:
			rows = await conn.fetch(
				f"""
				SELECT {_MATCH_COLUMNS} FROM matches
				WHERE (user_id = $1 OR matched_user_id = $1) AND ($2::text IS NULL OR status = $2)
				ORDER BY updated_at DESC
				""",
				user_id,
				status,
			)
		return [_match(row) for row in rows]

	async def compare_and_set(
		self,
		match_id: str,
		*,
		expected_version: int,
		status: str,
		now: datetime,
	) -> Optional[Match]:
		async with self._pool.acquire() as conn:
			row = await conn.fetchrow(
				f"""
				UPDATE matches
				SET status = $3, version = version + 1, updated_at = $4
				WHERE id = $1 AND version = $2
				RETURNING {_MATCH_COLUMNS}
				""",
				match_id,
				expected_version,
				status,
				now,
			)
		return _match(row) if row else None

	async def add_report(self, report: MatchReport) -> MatchReport:
		async with self._pool.acquire() as conn:
			await conn.execute(
				"INSERT INTO match_reports (id, match_id, reporter_id, reason, created_at) VALUES ($1, $2, $3, $4, $5)",
				report.id,
				report.match_id,
				report.reporter_id,
				report.reason,
				report.created_at,
			)
		return report

	async def relations(self, user_id: str) -> Relations:
		async with self._pool.acquire() as conn:
			rows = await conn.fetch(
				f"""
				SELECT {_MATCH_COLUMNS} FROM matches
				WHERE (user_id = $1 OR matched_user_id = $1) AND status IN ('accepted', 'blocked')
				""",
				user_id,
			)
		return _relations(user_id, (_match(row) for row in rows))


class PostgresPreferenceRepository:
	def __init__(self, pool: asyncpg.pool.Pool) -> None:
		self._pool = pool

	async def get(self, user_id: str) -> Optional[MatchPreferences]:
		return (await self.get_many([user_id])).get(user_id)

	async def get_many(self, user_ids: Iterable[str]) -> Dict[str, MatchPreferences]:
		ids = list(user_ids)
		if not ids:
			return {}
		async with self._pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT user_id, data FROM match_preferences WHERE user_id = ANY($1::text[])",
				ids,
			)
		return {row["user_id"]: MatchPreferences.model_validate_json(row["data"]) for row in rows}

	async def save(self, user_id: str, prefs: MatchPreferences) -> MatchPreferences:
		async with self._pool.acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO match_preferences (user_id, data, updated_at)
				VALUES ($1, $2::jsonb, now())
				ON CONFLICT (user_id) DO UPDATE SET data = EXCLUDED.data, updated_at = now()
				""",
				user_id,
				prefs.model_dump_json(),
			)
		return prefs


class PostgresProfileRepository:
	def __init__(self, pool: asyncpg.pool.Pool) -> None:
		self._pool = pool

	async def get_many(self, user_ids: Iterable[str]) -> Dict[str, CandidateProfile]:
		ids = list(user_ids)
		if not ids:
			return {}
		async with self._pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT user_id, age, verified, has_photo FROM match_profiles WHERE user_id = ANY($1::text[])",
				ids,
			)
		return {
			row["user_id"]: CandidateProfile(
				user_id=row["user_id"],
				age=row["age"],
				verified=bool(row["verified"]),
				has_photo=bool(row["has_photo"]),
			)
			for row in rows
		}
