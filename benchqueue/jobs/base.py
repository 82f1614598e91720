"""Shared interface for job kinds."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from benchqueue.config import Config, NodeConfig
from benchqueue.models.build import JobSubmission

if TYPE_CHECKING:
    from benchqueue.services.github_client import GitHubClient
    from benchqueue.services.nodes import NodeRunner


@dataclass
class JobContext:
    """Everything a job needs to run on one node."""

    config: Config
    node: NodeConfig
    runner: NodeRunner
    github: GitHubClient

    def log_prefix(self) -> str:
        return f"[node {self.node.name}]"


class Job(ABC):
    """A unit of work created from a validated submission.

    Job kinds form a closed set (see ``benchqueue.jobs.JOB_KINDS``); the server
    offers each submission to every kind whose ``is_valid`` accepts it.
    """

    func: ClassVar[str]

    def __init__(self, submission: JobSubmission):
        self.submission = submission

    @classmethod
    def is_valid(cls, submission: JobSubmission) -> bool:
        return submission.func == cls.func

    @classmethod
    @abstractmethod
    def from_submission(cls, submission: JobSubmission, github: GitHubClient) -> Job:
        """Build a job or raise SubmissionValidationError."""

    @abstractmethod
    def summary(self) -> str: ...

    @abstractmethod
    def run(self, ctx: JobContext) -> None:
        """Run the job to completion on ``ctx.node``, reporting its outcome."""

    def __repr__(self) -> str:
        return f"<{self.summary()}>"
