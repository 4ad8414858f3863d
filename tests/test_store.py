"""Job registry, expiry routine and retention sweep."""

from __future__ import annotations

import os
from datetime import timedelta

from conftest import stored_files, write_artifacts

from app.jobs.models import JobStatus, utcnow
from app.jobs.store import JobStore


def test_create_registers_queued_job_with_fresh_locations(store: JobStore, storage_dir: str) -> None:
    job = store.create("../secret/Étude.pdf")

    assert job.status == JobStatus.QUEUED
    assert job.original_name == "Étude.pdf"
    assert store.get(job.id) is job
    assert os.path.dirname(job.input_path) == storage_dir
    assert os.path.dirname(job.output_path) == storage_dir
    assert job.input_path != job.output_path
    assert job.expires_at is None
    assert job.idle_timer is None
    assert job.download_in_progress is False


def test_ids_are_unique(store: JobStore) -> None:
    ids = {store.create("a.pdf").id for _ in range(200)}
    assert len(ids) == 200
    assert len(store) == 200


def test_get_unknown_id(store: JobStore) -> None:
    assert store.get("nope") is None


def test_expire_deletes_artifacts_and_keeps_record(store: JobStore, storage_dir: str) -> None:
    job = store.create("a.pdf")
    write_artifacts(job)
    job.status = JobStatus.DONE

    assert store.expire(job.id) is True

    assert job.status == JobStatus.EXPIRED
    assert job.input_path is None and job.output_path is None
    assert job.finished_at is not None
    assert stored_files(storage_dir) == []
    assert store.get(job.id) is job


def test_expire_is_idempotent(store: JobStore) -> None:
    job = store.create("a.pdf")
    job.status = JobStatus.DONE
    assert store.expire(job.id) is True
    finished = job.finished_at

    assert store.expire(job.id) is False
    assert job.status == JobStatus.EXPIRED
    assert job.finished_at == finished


def test_expire_unknown_job(store: JobStore) -> None:
    assert store.expire("missing") is False


def test_expire_tolerates_missing_files(store: JobStore) -> None:
    job = store.create("a.pdf")
    job.status = JobStatus.DONE
    assert store.expire(job.id) is True


def test_counts_by_status(store: JobStore) -> None:
    store.create("a.pdf")
    done = store.create("b.pdf")
    done.status = JobStatus.DONE
    counts = store.counts()
    assert counts["queued"] == 1
    assert counts["done"] == 1
    assert counts["expired"] == 0


def test_sweep_drops_only_old_terminal_records(store: JobStore) -> None:
    old_expired = store.create("a.pdf")
    old_expired.status = JobStatus.EXPIRED
    old_expired.finished_at = utcnow() - timedelta(hours=2)

    old_error = store.create("b.pdf")
    old_error.status = JobStatus.ERROR
    old_error.finished_at = utcnow() - timedelta(hours=2)

    recent = store.create("c.pdf")
    recent.status = JobStatus.EXPIRED
    recent.finished_at = utcnow()

    live = store.create("d.pdf")
    live.status = JobStatus.DONE

    assert store.sweep(retention_seconds=3600) == 2
    assert store.get(old_expired.id) is None
    assert store.get(old_error.id) is None
    assert store.get(recent.id) is recent
    assert store.get(live.id) is live


def test_sweep_disabled(store: JobStore) -> None:
    job = store.create("a.pdf")
    job.status = JobStatus.EXPIRED
    job.finished_at = utcnow() - timedelta(days=1)
    assert store.sweep(retention_seconds=0) == 0
    assert store.get(job.id) is job
