"""Shared FIFO job queue.

Many producers (webhook handlers) push, many consumers (one worker per node)
pop. Every push and pop is a single operation under one lock, so no two
workers can ever receive the same job.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from benchqueue.jobs.base import Job

logger = logging.getLogger(__name__)


class JobQueue:
    """Unbounded FIFO of pending jobs. No priorities, no deduplication."""

    def __init__(self):
        self._jobs: deque[Job] = deque()
        self._cond = threading.Condition()

    def push(self, job: Job) -> int:
        """Append a job and return its 1-indexed queue position."""
        with self._cond:
            self._jobs.append(job)
            position = len(self._jobs)
            self._cond.notify()
        logger.info(f"[JobQueue] {job.summary()} enqueued at position {position}")
        return position

    def pop_front_or_empty(self) -> Job | None:
        """Remove and return the earliest job, or None without blocking."""
        with self._cond:
            if self._jobs:
                return self._jobs.popleft()
            return None

    def pop(self, timeout: float | None = None) -> Job | None:
        """Wait up to ``timeout`` seconds for a job. Never blocks producers."""
        with self._cond:
            if not self._jobs:
                self._cond.wait(timeout)
            if self._jobs:
                return self._jobs.popleft()
            return None

    def summaries(self) -> list[str]:
        with self._cond:
            return [job.summary() for job in self._jobs]

    def __len__(self) -> int:
        with self._cond:
            return len(self._jobs)
