"""AsyncPG pool creation and schema bootstrap."""

from __future__ import annotations

import logging

import asyncpg

from app.settings import settings

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "0001"

_SCHEMA = (
	"""
	CREATE TABLE IF NOT EXISTS schema_migrations (
		version TEXT PRIMARY KEY,
		applied_at TIMESTAMPTZ NOT NULL DEFAULT now()
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS location_records (
		id TEXT PRIMARY KEY,
		seq BIGSERIAL,
		user_id TEXT NOT NULL,
		latitude DOUBLE PRECISION NOT NULL,
		longitude DOUBLE PRECISION NOT NULL,
		accuracy DOUBLE PRECISION,
		privacy_mode TEXT NOT NULL,
		sharing_enabled BOOLEAN NOT NULL,
		recorded_at TIMESTAMPTZ NOT NULL
	)
	""",
	"CREATE INDEX IF NOT EXISTS location_records_user_idx ON location_records (user_id, recorded_at DESC, seq DESC)",
	"CREATE INDEX IF NOT EXISTS location_records_geo_idx ON location_records (latitude, longitude)",
	"""
	CREATE TABLE IF NOT EXISTS privacy_zones (
		id TEXT PRIMARY KEY,
		user_id TEXT NOT NULL,
		name TEXT NOT NULL,
		latitude DOUBLE PRECISION NOT NULL,
		longitude DOUBLE PRECISION NOT NULL,
		radius_m DOUBLE PRECISION NOT NULL CHECK (radius_m > 0),
		hide_from_non_matches BOOLEAN NOT NULL DEFAULT TRUE,
		created_at TIMESTAMPTZ NOT NULL,
		updated_at TIMESTAMPTZ NOT NULL
	)
	""",
	"CREATE INDEX IF NOT EXISTS privacy_zones_user_idx ON privacy_zones (user_id)",
	"""
	CREATE TABLE IF NOT EXISTS matches (
		id TEXT PRIMARY KEY,
		user_id TEXT NOT NULL,
		matched_user_id TEXT NOT NULL,
		status TEXT NOT NULL,
		score INTEGER NOT NULL DEFAULT 0,
		version INTEGER NOT NULL DEFAULT 1,
		created_at TIMESTAMPTZ NOT NULL,
		updated_at TIMESTAMPTZ NOT NULL
	)
	""",
	"CREATE INDEX IF NOT EXISTS matches_user_idx ON matches (user_id)",
	"CREATE INDEX IF NOT EXISTS matches_matched_user_idx ON matches (matched_user_id)",
	"""
	CREATE TABLE IF NOT EXISTS match_reports (
		id TEXT PRIMARY KEY,
		match_id TEXT NOT NULL,
		reporter_id TEXT NOT NULL,
		reason TEXT NOT NULL,
		created_at TIMESTAMPTZ NOT NULL
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS match_preferences (
		user_id TEXT PRIMARY KEY,
		data JSONB NOT NULL,
		updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS match_profiles (
		user_id TEXT PRIMARY KEY,
		age INTEGER,
		verified BOOLEAN NOT NULL DEFAULT FALSE,
		has_photo BOOLEAN NOT NULL DEFAULT FALSE
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS safety_alerts (
		id TEXT PRIMARY KEY,
		user_id TEXT NOT NULL,
		type TEXT NOT NULL,
		severity TEXT NOT NULL,
		priority INTEGER NOT NULL,
		description TEXT NOT NULL,
		message TEXT,
		location JSONB,
		dismissed BOOLEAN NOT NULL DEFAULT FALSE,
		resolved BOOLEAN NOT NULL DEFAULT FALSE,
		dismissed_at TIMESTAMPTZ,
		resolved_at TIMESTAMPTZ,
		notified_contacts TEXT[] NOT NULL DEFAULT '{}',
		created_at TIMESTAMPTZ NOT NULL,
		updated_at TIMESTAMPTZ NOT NULL
	)
	""",
	"CREATE INDEX IF NOT EXISTS safety_alerts_user_idx ON safety_alerts (user_id, created_at DESC)",
	"""
	CREATE TABLE IF NOT EXISTS safety_checks (
		id TEXT PRIMARY KEY,
		user_id TEXT NOT NULL,
		type TEXT NOT NULL,
		status TEXT NOT NULL,
		scheduled_for TIMESTAMPTZ NOT NULL,
		description TEXT NOT NULL,
		location JSONB,
		completed_at TIMESTAMPTZ,
		notified_contacts TEXT[] NOT NULL DEFAULT '{}',
		created_at TIMESTAMPTZ NOT NULL,
		updated_at TIMESTAMPTZ NOT NULL
	)
	""",
	"CREATE INDEX IF NOT EXISTS safety_checks_user_idx ON safety_checks (user_id, scheduled_for)",
	"""
	CREATE TABLE IF NOT EXISTS emergency_contacts (
		id TEXT PRIMARY KEY,
		user_id TEXT NOT NULL,
		name TEXT NOT NULL,
		email TEXT,
		phone TEXT,
		relationship TEXT,
		priority INTEGER NOT NULL DEFAULT 1,
		verified BOOLEAN NOT NULL DEFAULT FALSE,
		notify_on_sos BOOLEAN NOT NULL DEFAULT TRUE,
		created_at TIMESTAMPTZ NOT NULL
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS notification_preferences (
		user_id TEXT PRIMARY KEY,
		data JSONB NOT NULL,
		updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS notifications (
		id TEXT PRIMARY KEY,
		user_id TEXT NOT NULL,
		category TEXT NOT NULL,
		event TEXT NOT NULL,
		title TEXT NOT NULL,
		body TEXT NOT NULL,
		data JSONB NOT NULL DEFAULT '{}'::jsonb,
		created_at TIMESTAMPTZ NOT NULL
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS notification_queue (
		id TEXT PRIMARY KEY,
		user_id TEXT NOT NULL,
		payload JSONB NOT NULL,
		process_after TIMESTAMPTZ NOT NULL,
		created_at TIMESTAMPTZ NOT NULL
	)
	""",
	"CREATE INDEX IF NOT EXISTS notification_queue_due_idx ON notification_queue (process_after)",
)


async def create_pool(dsn: str | None = None) -> asyncpg.pool.Pool:
	return await asyncpg.create_pool(
		dsn=dsn or settings.postgres_url,
		min_size=settings.postgres_min_pool_size,
		max_size=settings.postgres_max_pool_size,
	)


async def apply_schema(pool: asyncpg.pool.Pool) -> None:
	"""Create core tables when missing and stamp the schema version."""
	async with pool.acquire() as conn:
		async with conn.transaction():
			for statement in _SCHEMA:
				await conn.execute(statement)
			await conn.execute(
				"INSERT INTO schema_migrations (version) VALUES ($1) ON CONFLICT DO NOTHING",
				SCHEMA_VERSION,
			)
	logger.info("schema ready", extra={"schema_version": SCHEMA_VERSION})
