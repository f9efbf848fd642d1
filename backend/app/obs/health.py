"""Health check helpers for liveness and readiness probes."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Dict, Optional, Tuple

import asyncpg
import redis.asyncio as redis
from redis.exceptions import RedisError

from app.infra.postgres import SCHEMA_VERSION
from app.obs import metrics

LOGGER = logging.getLogger(__name__)

_PROBE_ERRORS = (RedisError, asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


async def _redis_status(client: redis.Redis, timeout: float = 0.2) -> Dict[str, Any]:
	start = perf_counter()
	try:
		await asyncio.wait_for(client.ping(), timeout=timeout)
	except _PROBE_ERRORS as exc:
		metrics.mark_redis(False)
		LOGGER.warning("Redis readiness check failed", exc_info=True)
		return {"ok": False, "error": type(exc).__name__}
	latency = perf_counter() - start
	metrics.mark_redis(True, latency_seconds=latency)
	return {"ok": True, "latency_ms": round(latency * 1000, 2)}


async def _postgres_status(pool: asyncpg.pool.Pool, timeout: float = 0.3) -> Dict[str, Any]:
	start = perf_counter()
	try:
		async with pool.acquire() as conn:
			await asyncio.wait_for(conn.execute("SELECT 1"), timeout=timeout)
			version = await conn.fetchval(
				"SELECT version FROM schema_migrations ORDER BY version DESC LIMIT 1"
			)
	except _PROBE_ERRORS as exc:
		metrics.mark_postgres(False)
		LOGGER.warning("Postgres readiness query failed", exc_info=True)
		return {"ok": False, "error": type(exc).__name__}
	latency = perf_counter() - start
	metrics.mark_postgres(True, latency_seconds=latency)
	current = str(version) if version is not None else None
	return {
		"ok": current is not None and current >= SCHEMA_VERSION,
		"latency_ms": round(latency * 1000, 2),
		"schema_version": current,
	}


async def liveness() -> Dict[str, Any]:
	return {"status": "ok"}


async def readiness(client: redis.Redis, pool: Optional[asyncpg.pool.Pool]) -> Tuple[int, Dict[str, Any]]:
	"""Probe every configured backend; in-memory storage has nothing to probe."""
	checks: Dict[str, Any] = {"redis": await _redis_status(client)}
	if pool is not None:
		checks["postgres"] = await _postgres_status(pool)
	ok = all(check.get("ok") for check in checks.values())
	return (200 if ok else 503), {"status": "ok" if ok else "degraded", "checks": checks}
