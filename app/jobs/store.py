"""In-memory job registry and the expiry routine.

The store is the only place that creates job records and the only place
that deletes their artifacts. Records outlive their artifacts: an expired
job stays queryable until the retention sweep drops it.
"""

from datetime import timedelta
from typing import Dict, List, Optional

from app.config import get_logger
from app.io.filenames import sanitize_original_name
from app.jobs import state_machine
from app.jobs.models import TERMINAL_STATUSES, Job, JobStatus, utcnow
from app.storage.temp_files import TempFileStore

logger = get_logger(__name__)


class JobStore:
    def __init__(self, files: TempFileStore):
        self._files = files
        self._jobs: Dict[str, Job] = {}

    @property
    def files(self) -> TempFileStore:
        return self._files

    def create(self, original_name: Optional[str]) -> Job:
        """Register a queued job with fresh artifact locations."""
        job = Job(original_name=sanitize_original_name(original_name))
        while job.id in self._jobs:
            job = Job(original_name=job.original_name)
        job.input_path = self._files.input_path(job.id)
        job.output_path = self._files.output_path(job.id)
        self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def all(self) -> List[Job]:
        return list(self._jobs.values())

    def __len__(self) -> int:
        return len(self._jobs)

    def counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in JobStatus}
        for job in self._jobs.values():
            counts[job.status.value] += 1
        return counts

    def purge_artifacts(self, job: Job) -> None:
        """Delete whatever input/output files the job still references."""
        removed = 0
        for path in (job.input_path, job.output_path):
            if self._files.remove(path):
                removed += 1
        job.input_path = None
        job.output_path = None
        if removed:
            logger.info("%s - deleted %d file(s)", job.tag, removed)

    def expire(self, job_id: str) -> bool:
        """Delete a job's artifacts and mark it expired.

        Safe to call from the idle timer, the download gate and the shutdown
        reaper in any order. Returns False if the job is unknown or was
        already expired.
        """
        job = self._jobs.get(job_id)
        if job is None or job.status == JobStatus.EXPIRED:
            return False

        if job.idle_timer is not None:
            job.idle_timer.cancel()
            job.idle_timer = None
        job.expires_at = None
        job.download_in_progress = False

        state_machine.transition(job, JobStatus.EXPIRED)
        job.finished_at = utcnow()
        self.purge_artifacts(job)
        logger.info("%s - expired", job.tag)
        return True

    def sweep(self, retention_seconds: float) -> int:
        """Forget terminal records that finished more than ``retention_seconds`` ago."""
        if retention_seconds <= 0:
            return 0
        cutoff = utcnow() - timedelta(seconds=retention_seconds)
        stale = [
            job
            for job in self._jobs.values()
            if job.status in TERMINAL_STATUSES
            and job.finished_at is not None
            and job.finished_at < cutoff
        ]
        for job in stale:
            self.purge_artifacts(job)
            del self._jobs[job.id]
        if stale:
            logger.info("swept %d finished job record(s)", len(stale))
        return len(stale)
