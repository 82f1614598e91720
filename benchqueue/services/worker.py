"""Per-node worker loop.

Each node gets one thread that pulls jobs from the shared queue and runs them
on that node. A failing job is reported and absorbed; only a fault in the loop
itself stops the worker.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from benchqueue.config import Config, NodeConfig
from benchqueue.errors import BenchqueueError, WorkerLoopError
from benchqueue.jobs.base import JobContext
from benchqueue.services.nodes import NodeRunner, persist_dirs
from benchqueue.services.queue import JobQueue

if TYPE_CHECKING:
    from benchqueue.jobs.base import Job
    from benchqueue.services.github_client import GitHubClient

logger = logging.getLogger(__name__)


class IterationOutcome(str, Enum):
    IDLE = "idle"
    COMPLETED = "completed"
    JOB_FAILED = "job_failed"
    FATAL = "fatal"


@dataclass
class IterationResult:
    outcome: IterationOutcome
    job: Job | None = None
    error: Exception | None = None


def failure_message(job: Job, error: Exception, mention: str) -> str:
    """Compose the comment posted when a job fails on a node."""
    err_str = str(error) or type(error).__name__
    message = (
        f"Something went wrong when running [your job]({job.submission.url}) "
        f"(`{job.summary()}`):\n```\n{err_str}\n```\n"
    )
    url = error.url if isinstance(error, BenchqueueError) else ""
    if url:
        message += f"Logs and partial data can be found [here]({url})\n"
    else:
        message += "Unfortunately, the logs could not be uploaded.\n"
    return message + mention


class NodeWorker:
    def __init__(
        self,
        config: Config,
        node: NodeConfig,
        queue: JobQueue,
        github: GitHubClient,
        runner: NodeRunner | None = None,
    ):
        self.config = config
        self.node = node
        self.queue = queue
        self.github = github
        self.runner = runner if runner is not None else NodeRunner(node)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def prefix(self) -> str:
        return f"[node {self.node.name}]"

    def start(self) -> None:
        self._thread = threading.Thread(target=self.run, name=f"worker-{self.node.name}", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop after the current iteration. A running job is never interrupted."""
        self._stop.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self) -> None:
        logger.info(f"{self.prefix} worker started")
        while not self._stop.is_set():
            result = self.run_once()
            if result.outcome is IterationOutcome.FATAL:
                error = WorkerLoopError(self.node.name, str(result.error))
                logger.error(f"{self.prefix} encountered task error: {error.reason}")
                raise error from result.error
            # Throttle polling regardless of outcome.
            self._stop.wait(self.config.poll_interval)
        logger.info(f"{self.prefix} worker stopped")

    def run_once(self) -> IterationResult:
        """Take at most one job from the queue and run it to completion."""
        try:
            job = self.queue.pop(timeout=self.config.idle_interval)
            if job is None:
                return IterationResult(IterationOutcome.IDLE)
            message = f"running on node {self.node.name}: {job.summary()}"
            self.github.reply_status(job.submission, "pending", message)
            logger.info(f"{self.prefix} {message}")
        except Exception as e:
            return IterationResult(IterationOutcome.FATAL, error=e)

        try:
            persist_dirs(self.config, self.node, self.runner)
            job.run(JobContext(config=self.config, node=self.node, runner=self.runner, github=self.github))
        except Exception as e:
            return self._handle_job_failure(job, e)

        logger.info(f"{self.prefix} completed job: {job.summary()}")
        return IterationResult(IterationOutcome.COMPLETED, job=job)

    def _handle_job_failure(self, job: Job, error: Exception) -> IterationResult:
        try:
            logger.error(f"{self.prefix} job {job.summary()} failed: {error}")
            self.github.reply_status(job.submission, "error", str(error) or type(error).__name__)
            self.github.reply_comment(job.submission, failure_message(job, error, self.config.admin_mention))
        except Exception as e:
            return IterationResult(IterationOutcome.FATAL, job=job, error=e)
        return IterationResult(IterationOutcome.JOB_FAILED, job=job, error=error)
