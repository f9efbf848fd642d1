"""Redis connection management."""

from __future__ import annotations

import redis.asyncio as redis

from app.settings import settings


def create_client(url: str | None = None) -> redis.Redis:
	"""Build a decoded-response client; the composition root owns its lifetime."""
	return redis.from_url(url or settings.redis_url, decode_responses=True)


async def close_client(client: redis.Redis) -> None:
	close = getattr(client, "aclose", None) or client.close
	await close()
