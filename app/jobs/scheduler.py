"""Idle expiry timers for jobs whose output is waiting to be downloaded."""

import asyncio
from datetime import timedelta
from typing import Optional

from app.config import get_logger
from app.jobs.models import Job, JobStatus, utcnow
from app.jobs.store import JobStore

logger = get_logger(__name__)


class IdleExpiryScheduler:
    """One-shot timer per ready job.

    A job is armed once, on reaching ``done``. The download gate disarms it
    before streaming; otherwise the timer expires the job after ``ttl``.
    """

    def __init__(self, store: JobStore, ttl_seconds: float):
        self._store = store
        self._ttl = ttl_seconds

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def arm(self, job: Job, loop: Optional[asyncio.AbstractEventLoop] = None) -> bool:
        if job.status != JobStatus.DONE:
            return False
        if job.idle_timer is not None or job.download_in_progress:
            logger.warning("%s - idle timer not armed (already claimed)", job.tag)
            return False

        loop = loop or asyncio.get_running_loop()
        job.expires_at = utcnow() + timedelta(seconds=self._ttl)
        job.idle_timer = loop.call_later(self._ttl, self._fire, job.id)
        return True

    def disarm(self, job: Job) -> None:
        if job.idle_timer is not None:
            job.idle_timer.cancel()
            job.idle_timer = None
        job.expires_at = None

    def _fire(self, job_id: str) -> None:
        job = self._store.get(job_id)
        if job is None:
            return
        job.idle_timer = None
        if job.download_in_progress:
            return
        if self._store.expire(job_id):
            logger.info("%s - not downloaded within %ss", job.tag, self._ttl)
