"""APScheduler wrapper for periodic maintenance jobs."""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class JobScheduler:
    """Runs coroutine jobs on fixed intervals, one instance per job at a time."""

    def __init__(self) -> None:
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> None:
        if not self._started:
            self._scheduler.start()
            self._started = True

    def shutdown(self) -> None:
        if self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False

    def schedule_every(self, job_id: str, func: Callable[[], Awaitable[object]], *, seconds: int) -> None:
        trigger = IntervalTrigger(seconds=max(1, int(seconds)))
        self._scheduler.add_job(
            _instrumented(job_id, func),
            trigger=trigger,
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    def job_ids(self) -> list[str]:
        return [job.id for job in self._scheduler.get_jobs()]


def _instrumented(name: str, func: Callable[[], Awaitable[object]]) -> Callable[[], Awaitable[None]]:
    async def run() -> None:
        start = time.perf_counter()
        try:
            await func()
        except Exception:
            obs_metrics.record_job_run(name, result="error")
            logger.exception("scheduled job failed", extra={"job": name})
            return
        obs_metrics.record_job_run(name, result="ok", duration_seconds=time.perf_counter() - start)

    return run


__all__ = ["JobScheduler"]
