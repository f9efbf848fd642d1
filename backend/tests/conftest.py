import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Settings are read at import time; pin a test environment before importing app modules
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production-use")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("OBS_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from app.container import assemble
from app.infra.redis import close_client
from app.main import create_app
from app.settings import settings


class FrozenClock:
	"""Callable clock the services read instead of the wall clock."""

	def __init__(self, now: datetime) -> None:
		self.now = now

	def __call__(self) -> datetime:
		return self.now

	def advance(self, **delta) -> datetime:
		self.now = self.now + timedelta(**delta)
		return self.now


@pytest.fixture(autouse=True)
def force_test_settings():
	"""API tests authenticate via X-User-Id headers, which are only accepted in dev mode."""
	original_env = settings.environment
	settings.environment = "test"
	try:
		yield
	finally:
		settings.environment = original_env


@pytest.fixture
def clock() -> FrozenClock:
	return FrozenClock(datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def fake_redis():
	client = FakeRedis(decode_responses=True)
	try:
		yield client
	finally:
		await client.flushall()
		await close_client(client)


@pytest_asyncio.fixture
async def container(fake_redis, clock):
	built = assemble(settings, redis_client=fake_redis, clock=clock, owns_redis=False)
	try:
		yield built
	finally:
		await built.close()


@pytest_asyncio.fixture
async def api_client(container):
	app = create_app(container)
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
