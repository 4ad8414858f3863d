"""Job lifecycle manager: upload intake, background optimisation, shutdown.

Everything here runs on the event loop. Status, timer and guard changes
happen in synchronous stretches between awaits; after every await the job
is re-read, because the idle timer, a download or the shutdown reaper may
have moved it on in the meantime.
"""

import asyncio
from typing import Optional, Set

from app.config import get_logger
from app.errors import JobError, TransformError, UploadPersistError
from app.jobs import state_machine
from app.jobs.models import Job, JobStatus, utcnow
from app.jobs.scheduler import IdleExpiryScheduler
from app.jobs.store import JobStore
from app.jobs.transform import Transformer, non_empty

logger = get_logger(__name__)

FAILED_MESSAGE = "Processing failed."
READY_MESSAGE = "Ready for download."


class JobManager:
    def __init__(
        self,
        store: JobStore,
        scheduler: IdleExpiryScheduler,
        transformer: Transformer,
        max_upload_bytes: int,
        shutdown_grace_seconds: float = 5.0,
        retention_seconds: float = 0.0,
        sweep_interval_seconds: float = 60.0,
    ):
        self._store = store
        self._scheduler = scheduler
        self._transformer = transformer
        self._max_upload_bytes = max_upload_bytes
        self._grace = shutdown_grace_seconds
        self._retention = retention_seconds
        self._sweep_interval = sweep_interval_seconds
        self._tasks: Set[asyncio.Task] = set()
        self._sweeper: Optional[asyncio.Task] = None
        self._running = False

    @property
    def store(self) -> JobStore:
        return self._store

    async def start(self) -> None:
        self._running = True
        if self._retention > 0:
            self._sweeper = asyncio.create_task(self._sweep_loop())

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    async def submit(self, upload, original_name: Optional[str]) -> Job:
        """Persist an upload and schedule its optimisation.

        ``upload`` is anything with ``async read(n)``. Raises
        UploadPersistError / UploadTooLargeError with ``job_id`` set; the job
        is then already in ``error`` with its files removed.
        """
        job = self._store.create(original_name)
        logger.info("%s - received request to process %s", job.tag, job.original_name)

        try:
            await self._store.files.write_upload(
                job.input_path, upload, self._max_upload_bytes
            )
        except JobError as exc:
            logger.error("%s - write error: %s", job.tag, exc.__cause__ or exc)
            exc.job_id = job.id
            self._fail(job)
            raise

        if job.status != JobStatus.QUEUED:
            # Reaped while the upload was being written.
            self._store.purge_artifacts(job)
            raise UploadPersistError("Service is shutting down.", job_id=job.id)

        task = asyncio.create_task(self._process(job.id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    async def _process(self, job_id: str) -> None:
        job = self._store.get(job_id)
        if job is None or job.status != JobStatus.QUEUED:
            return

        state_machine.transition(job, JobStatus.PROCESSING)
        job.started_at = utcnow()
        output_path = job.output_path

        try:
            produced = await self._transformer.transform(job.input_path, output_path, job.tag)
            if not produced or not non_empty(produced):
                raise TransformError(detail="transformer reported success without output")
        except TransformError as exc:
            logger.error("%s - processing error: %s", job.tag, exc.detail or exc)
            self._finish_failed(job_id, output_path)
            return
        except Exception:
            logger.exception("%s - processing error", job.tag)
            self._finish_failed(job_id, output_path)
            return

        job = self._store.get(job_id)
        if job is None or job.status != JobStatus.PROCESSING:
            # Expired while the transformer ran; its output has no owner.
            self._store.files.remove(produced)
            if produced != output_path:
                self._store.files.remove(output_path)
            return

        if produced != output_path:
            self._store.files.remove(output_path)
            job.output_path = produced
        state_machine.transition(job, JobStatus.DONE)
        job.ready_at = utcnow()
        job.duration_ms = _elapsed_ms(job)
        job.message = READY_MESSAGE
        self._scheduler.arm(job)
        logger.info("%s - done in %dms, ready for download", job.tag, job.duration_ms)

    def _finish_failed(self, job_id: str, output_path: Optional[str]) -> None:
        job = self._store.get(job_id)
        if job is None or job.status != JobStatus.PROCESSING:
            self._store.files.remove(output_path)
            return
        self._fail(job)
        logger.info("%s - done in %dms", job.tag, job.duration_ms)

    def _fail(self, job: Job) -> None:
        self._store.purge_artifacts(job)
        state_machine.transition(job, JobStatus.ERROR)
        job.message = FAILED_MESSAGE
        job.finished_at = utcnow()
        job.duration_ms = _elapsed_ms(job)

    # ------------------------------------------------------------------
    # Retention sweep
    # ------------------------------------------------------------------

    async def _sweep_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._sweep_interval)
            except asyncio.CancelledError:
                break
            self._store.sweep(self._retention)

    # ------------------------------------------------------------------
    # Shutdown reaper
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:
        """Expire every job and remove the storage root, within the grace period."""
        self._running = False
        if self._sweeper:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass

        try:
            await asyncio.wait_for(self._reap(), timeout=self._grace)
        except asyncio.TimeoutError:
            logger.warning("[shutdown] cleanup did not finish within %ss, exiting anyway", self._grace)

    async def _reap(self) -> None:
        jobs = self._store.all()
        expired = sum(1 for job in jobs if self._store.expire(job.id))
        logger.info("[shutdown] expired %d job(s)", expired)
        await asyncio.to_thread(self._store.files.destroy)


def _elapsed_ms(job: Job) -> int:
    return int((utcnow() - job.created_at).total_seconds() * 1000)
