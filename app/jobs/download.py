"""Single-use download gate.

A ready job's output can be claimed once. Claiming disarms the idle timer
and sets the in-progress guard; whatever happens to the transfer afterwards
(completion, read error, client hang-up) the job is expired when the
response finishes.
"""

import os
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict

import anyio
from fastapi.responses import StreamingResponse

from app.config import get_logger
from app.errors import GoneError, JobFailedError, NotFoundError, NotReadyError, StreamError
from app.io.filenames import content_disposition
from app.jobs.models import JobStatus
from app.jobs.scheduler import IdleExpiryScheduler
from app.jobs.store import JobStore

logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024
PDF_MEDIA_TYPE = "application/pdf"


@dataclass
class DownloadTicket:
    job_id: str
    path: str
    filename: str
    size: int
    tag: str = ""
    headers: Dict[str, str] = field(default_factory=dict)


class DownloadGate:
    def __init__(self, store: JobStore, scheduler: IdleExpiryScheduler):
        self._store = store
        self._scheduler = scheduler

    def claim(self, job_id: str) -> DownloadTicket:
        """Check the job can be downloaded and take ownership of its output.

        Raises NotFoundError, GoneError, JobFailedError or NotReadyError.
        No await happens between the checks and setting the guard, so two
        requests for the same job cannot both get a ticket.
        """
        job = self._store.get(job_id)
        if job is None:
            raise NotFoundError(job_id=job_id)
        if job.status == JobStatus.EXPIRED:
            raise GoneError(job_id=job_id)
        if job.status == JobStatus.ERROR:
            raise JobFailedError(job_id=job_id)
        if job.status != JobStatus.DONE:
            raise NotReadyError(job_id=job_id)
        if job.download_in_progress:
            raise GoneError("File is already being downloaded.", job_id=job_id)

        path = job.output_path
        try:
            size = os.path.getsize(path) if path else -1
        except OSError:
            size = -1
        if size < 0:
            logger.warning("%s - output missing at download time", job.tag)
            self._store.expire(job_id)
            raise GoneError(job_id=job_id)

        self._scheduler.disarm(job)
        job.download_in_progress = True
        logger.info("%s - sending back %s (%d bytes)", job.tag, job.original_name, size)
        return DownloadTicket(
            job_id=job_id,
            path=path,
            filename=job.original_name,
            size=size,
            tag=job.tag,
            headers={
                "Content-Disposition": content_disposition(job.original_name),
                "Content-Length": str(size),
            },
        )

    def release(self, job_id: str) -> None:
        """Expire the job if its transfer still holds the guard."""
        job = self._store.get(job_id)
        if job is None or not job.download_in_progress:
            return
        job.download_in_progress = False
        self._store.expire(job_id)

    async def iter_file(self, ticket: DownloadTicket) -> AsyncIterator[bytes]:
        try:
            async with await anyio.open_file(ticket.path, "rb") as f:
                while True:
                    chunk = await f.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    yield chunk
        except OSError as exc:
            logger.error("%s - stream read error: %s", ticket.tag, exc)
            raise StreamError(job_id=ticket.job_id) from exc

    def response(self, ticket: DownloadTicket) -> "SingleUseFileResponse":
        return SingleUseFileResponse(
            self.iter_file(ticket),
            on_close=lambda: self.release(ticket.job_id),
            media_type=PDF_MEDIA_TYPE,
            headers=ticket.headers,
        )


class SingleUseFileResponse(StreamingResponse):
    """Streaming response that runs ``on_close`` however the transfer ends."""

    def __init__(self, content, on_close: Callable[[], None], **kwargs):
        super().__init__(content, **kwargs)
        self._on_close = on_close

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self._on_close()
