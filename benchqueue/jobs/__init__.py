"""Job kinds accepted by the server."""

from benchqueue.jobs.base import Job, JobContext
from benchqueue.jobs.benchmark import BenchmarkJob

# Every submission is offered to each of these kinds, in order.
JOB_KINDS: tuple[type[Job], ...] = (BenchmarkJob,)

__all__ = ["JOB_KINDS", "BenchmarkJob", "Job", "JobContext"]
