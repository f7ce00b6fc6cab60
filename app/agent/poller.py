"""
Job poller for job-based strategies.

A job moves queued/running -> completed | failed | cancelled | expired; the
terminal states are absorbing. Polling is fixed-interval under a deadline.
Sleep and clock are injected so the same loop runs under any event loop (and
under a fake clock in tests).
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from app.core.errors import PollTimeout

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def terminal(self) -> bool:
        return self not in (JobStatus.QUEUED, JobStatus.RUNNING)


# Remote status names -> job status
_REMOTE_STATUS = {
    "queued": JobStatus.QUEUED,
    "in_progress": JobStatus.RUNNING,
    "running": JobStatus.RUNNING,
    "cancelling": JobStatus.RUNNING,
    "completed": JobStatus.COMPLETED,
    "failed": JobStatus.FAILED,
    "incomplete": JobStatus.FAILED,
    "cancelled": JobStatus.CANCELLED,
    "expired": JobStatus.EXPIRED,
}


def parse_status(remote: str | None) -> JobStatus:
    status = _REMOTE_STATUS.get((remote or "").lower())
    if status is None:
        # Unknown states keep polling; the deadline bounds them.
        logger.warning("[poller:parse_status] unknown remote status %r, treating as running", remote)
        return JobStatus.RUNNING
    return status


@dataclass
class Job:
    id: str
    status: JobStatus
    result: dict[str, Any] | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "Job":
        return cls(id=str(data.get("id") or ""), status=parse_status(data.get("status")), result=data)


class JobPoller:
    """await_job: submit once, then poll every interval_ms until terminal or deadline_ms elapses."""

    def __init__(
        self,
        interval_ms: int,
        deadline_ms: int,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.interval_ms = interval_ms
        self.deadline_ms = deadline_ms
        self._sleep = sleep
        self._clock = clock

    async def await_job(
        self,
        submit: Callable[[], Awaitable[Job]],
        fetch_status: Callable[[str], Awaitable[Job]],
    ) -> Job:
        """
        Returns the job in a terminal state. Raises PollTimeout if it is still
        queued/running when the deadline (counted from submission) elapses.
        The job is not cancelled server-side on timeout.
        """
        job = await submit()
        started = self._clock()
        polls = 0
        logger.info("[poller:await_job] submitted id=%s status=%s", job.id, job.status.value)
        while not job.status.terminal:
            elapsed_ms = (self._clock() - started) * 1000
            remaining_ms = self.deadline_ms - elapsed_ms
            if remaining_ms <= 0:
                logger.warning("[poller:await_job] id=%s timed out after %d polls", job.id, polls)
                raise PollTimeout(job.id, elapsed_ms)
            await self._sleep(min(self.interval_ms, remaining_ms) / 1000)
            job = await fetch_status(job.id)
            polls += 1
        logger.info("[poller:await_job] OUT id=%s status=%s polls=%d", job.id, job.status.value, polls)
        return job
