"""Job record data model for the ephemeral optimisation lifecycle."""

import asyncio
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"
    EXPIRED = "expired"


TERMINAL_STATUSES = frozenset({JobStatus.ERROR, JobStatus.EXPIRED})


class Job(BaseModel):
    """Tracks one uploaded document from upload to purge.

    ``input_path`` and ``output_path`` are cleared once the artifacts behind
    them have been deleted. ``idle_timer`` belongs to the idle expiry
    scheduler and is never serialised.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    original_name: str
    input_path: Optional[str] = None
    output_path: Optional[str] = None
    status: JobStatus = JobStatus.QUEUED
    message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    idle_timer: Optional[asyncio.TimerHandle] = Field(default=None, exclude=True)
    download_in_progress: bool = False

    model_config = {"arbitrary_types_allowed": True}

    @property
    def tag(self) -> str:
        return f"[{self.id}]"

    def public_view(self) -> Dict[str, Any]:
        """Shape returned by ``GET /status/{jobId}``."""
        return {
            "jobId": self.id,
            "status": self.status.value,
            "message": self.message,
            "createdAt": _iso(self.created_at),
            "readyAt": _iso(self.ready_at),
            "expiresAt": _iso(self.expires_at),
            "durationMs": self.duration_ms,
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
