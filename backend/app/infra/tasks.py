"""Detached background tasks for best-effort secondary work."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Set

from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class DetachedTasks:
	"""Spawn coroutines the caller never awaits.

	Strong references are held until completion and failures are logged,
	never raised back into the request that spawned them.
	"""

	def __init__(self) -> None:
		self._tasks: Set[asyncio.Task] = set()

	def spawn(self, coro: Awaitable[object], *, name: str) -> asyncio.Task:
		task = asyncio.ensure_future(coro)
		task.set_name(name)
		self._tasks.add(task)
		task.add_done_callback(self._finished)
		return task

	def _finished(self, task: asyncio.Task) -> None:
		self._tasks.discard(task)
		if task.cancelled():
			return
		exc = task.exception()
		if exc is not None:
			obs_metrics.detached_task_failed(task.get_name())
			logger.warning(
				"detached task failed",
				exc_info=(type(exc), exc, exc.__traceback__),
				extra={"task": task.get_name()},
			)

	@property
	def pending(self) -> int:
		return len(self._tasks)

	async def drain(self) -> None:
		"""Wait for every in-flight task; used by tests and on shutdown."""
		while self._tasks:
			await asyncio.gather(*list(self._tasks), return_exceptions=True)

	async def shutdown(self) -> None:
		for task in list(self._tasks):
			task.cancel()
		await self.drain()
