"""Idle expiry timers."""

from __future__ import annotations

import asyncio

import pytest
from conftest import stored_files, write_artifacts

from app.jobs.models import JobStatus, utcnow
from app.jobs.scheduler import IdleExpiryScheduler
from app.jobs.store import JobStore

pytestmark = pytest.mark.asyncio


def ready_job(store: JobStore):
    job = store.create("score.pdf")
    write_artifacts(job)
    job.status = JobStatus.DONE
    return job


async def test_unclaimed_job_expires_after_ttl(store: JobStore, storage_dir: str) -> None:
    scheduler = IdleExpiryScheduler(store, ttl_seconds=0.05)
    job = ready_job(store)

    assert scheduler.arm(job) is True
    assert job.expires_at is not None and job.expires_at > utcnow()
    assert job.idle_timer is not None

    await asyncio.sleep(0.2)

    assert job.status == JobStatus.EXPIRED
    assert job.idle_timer is None
    assert job.expires_at is None
    assert stored_files(storage_dir) == []


async def test_disarm_prevents_expiry(store: JobStore) -> None:
    scheduler = IdleExpiryScheduler(store, ttl_seconds=0.05)
    job = ready_job(store)
    scheduler.arm(job)

    scheduler.disarm(job)
    await asyncio.sleep(0.15)

    assert job.status == JobStatus.DONE
    assert job.expires_at is None
    assert job.idle_timer is None


async def test_arm_only_once(store: JobStore) -> None:
    scheduler = IdleExpiryScheduler(store, ttl_seconds=10)
    job = ready_job(store)
    assert scheduler.arm(job) is True
    first = job.idle_timer

    assert scheduler.arm(job) is False
    assert job.idle_timer is first
    scheduler.disarm(job)


async def test_arm_requires_done(store: JobStore) -> None:
    scheduler = IdleExpiryScheduler(store, ttl_seconds=10)
    job = store.create("a.pdf")
    job.status = JobStatus.ERROR
    assert scheduler.arm(job) is False
    assert job.idle_timer is None
    assert job.expires_at is None


async def test_arm_refused_while_downloading(store: JobStore) -> None:
    scheduler = IdleExpiryScheduler(store, ttl_seconds=10)
    job = ready_job(store)
    job.download_in_progress = True
    assert scheduler.arm(job) is False
    assert job.idle_timer is None


async def test_timer_firing_mid_download_does_nothing(store: JobStore) -> None:
    scheduler = IdleExpiryScheduler(store, ttl_seconds=0.05)
    job = ready_job(store)
    scheduler.arm(job)
    job.download_in_progress = True

    await asyncio.sleep(0.15)

    assert job.status == JobStatus.DONE


async def test_expire_cancels_armed_timer(store: JobStore) -> None:
    scheduler = IdleExpiryScheduler(store, ttl_seconds=10)
    job = ready_job(store)
    scheduler.arm(job)
    timer = job.idle_timer

    store.expire(job.id)

    assert timer.cancelled()
    assert job.idle_timer is None
