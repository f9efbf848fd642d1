"""Redis-backed sliding window rate limiting."""

from __future__ import annotations

import time
import uuid
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.domain.errors import RateLimited, Unavailable
from app.obs import metrics as obs_metrics


class RateLimiter:
	"""Counts attempts per (action, identifier) over a trailing window.

	Each attempt is a sorted-set member scored by its timestamp. Entries that
	fall out of the window are trimmed before counting, so the limit bounds
	the trailing ``window_seconds`` rather than a calendar bucket.
	"""

	def __init__(
		self,
		client: redis.Redis,
		*,
		limit: int = 5,
		window_seconds: int = 60,
		prefix: str = "rl",
	) -> None:
		self._client = client
		self.limit = limit
		self.window_seconds = window_seconds
		self._prefix = prefix

	def _key(self, action: str, identifier: str) -> str:
		return f"{self._prefix}:{action}:{identifier}"

	async def allow(
		self,
		action: str,
		identifier: str,
		*,
		limit: Optional[int] = None,
		window_seconds: Optional[int] = None,
		now: Optional[float] = None,
	) -> bool:
		"""Record an attempt and return True when it is within budget.

		Rejected attempts are removed again, so they do not count against the
		window.
		"""

		limit = self.limit if limit is None else limit
		if limit <= 0:
			return False
		window = max(1, int(window_seconds or self.window_seconds))
		now = time.time() if now is None else now
		key = self._key(action, identifier)
		member = f"{now:.6f}:{uuid.uuid4().hex}"
		try:
			# add, trim and count in one MULTI so concurrent callers see each other
			async with self._client.pipeline(transaction=True) as pipe:
				pipe.zadd(key, {member: now})
				pipe.zremrangebyscore(key, "-inf", now - window)
				pipe.zcard(key)
				pipe.expire(key, window)
				_, _, count, _ = await pipe.execute()
			if int(count) > limit:
				await self._client.zrem(key, member)
				return False
		except RedisError as exc:
			raise Unavailable("rate limiter unavailable") from exc
		return True

	async def enforce(self, action: str, identifier: str, *, now: Optional[float] = None) -> None:
		"""Raise RateLimited unless the attempt fits in the window."""
		if not await self.allow(action, identifier, now=now):
			obs_metrics.rate_limited(action)
			raise RateLimited(action=action, retry_after=self.window_seconds)

	async def clear(self, action: str, identifier: str) -> None:
		await self._client.delete(self._key(action, identifier))

	async def attempts(self, action: str, identifier: str, *, now: Optional[float] = None) -> int:
		now = time.time() if now is None else now
		key = self._key(action, identifier)
		return int(await self._client.zcount(key, f"({now - self.window_seconds}", "+inf"))
