"""Legal status transitions for a job.

    queued -> processing -> done  -> expired
                         -> error -> expired (shutdown only)
    queued -> error                 (upload could not be stored)

Any state may be forced to ``expired`` by the shutdown reaper. ``expired``
is terminal; expiring twice is a no-op handled by the store, not here.
"""

from typing import Dict, FrozenSet

from app.errors import InvalidTransitionError
from app.jobs.models import Job, JobStatus

TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING, JobStatus.ERROR, JobStatus.EXPIRED}),
    JobStatus.PROCESSING: frozenset({JobStatus.DONE, JobStatus.ERROR, JobStatus.EXPIRED}),
    JobStatus.DONE: frozenset({JobStatus.EXPIRED}),
    JobStatus.ERROR: frozenset({JobStatus.EXPIRED}),
    JobStatus.EXPIRED: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def transition(job: Job, target: JobStatus) -> None:
    """Move ``job`` to ``target`` or raise InvalidTransitionError."""
    if not can_transition(job.status, target):
        raise InvalidTransitionError(
            f"Cannot move job from {job.status.value} to {target.value}",
            job_id=job.id,
        )
    job.status = target
