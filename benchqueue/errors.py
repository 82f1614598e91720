"""Error types for submissions, job execution and the dispatch loop.

All errors inherit from BenchqueueError for easy catching. Job-scoped errors
carry an optional ``url`` pointing at uploaded logs or partial data.
"""

from __future__ import annotations


class BenchqueueError(Exception):
    """Base exception for all benchqueue failures."""

    def __init__(self, message: str, url: str = ""):
        self.url = url
        super().__init__(message)


class SubmissionValidationError(BenchqueueError):
    """Raised when trigger arguments or a tag predicate are malformed."""


class JobExecutionError(BenchqueueError):
    """Base for failures that abort a single job on its node."""


class BuildError(JobExecutionError):
    """Raised when the revision under test could not be built."""


class ExecutionError(JobExecutionError):
    """Raised when the isolated benchmark process fails."""


class ResultReadError(JobExecutionError):
    """Raised when the benchmark result file is missing or undecodable."""


class UploadError(BenchqueueError):
    """Raised when a report artifact could not be uploaded."""


class WorkerLoopError(BenchqueueError):
    """Raised when a node's dispatch loop itself fails."""

    def __init__(self, node: str, reason: str):
        self.node = node
        self.reason = reason
        super().__init__(f"Worker loop failure on node {node}: {reason}")
