"""Benchmark job: run the suite on one build, optionally against a second."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

import httpx

from benchqueue.errors import SubmissionValidationError
from benchqueue.jobs.base import Job, JobContext
from benchqueue.jobs.tagpred import is_valid_tagpred, parse_benchmark_args
from benchqueue.models.benchmark import JobResults
from benchqueue.models.build import BRANCH_SEPARATOR, SHA_SEPARATOR, BuildRef, JobSubmission, snipsha
from benchqueue.services.benchmarker import Role, execute_benchmarks
from benchqueue.services.judge import judge
from benchqueue.services.reporter import report

if TYPE_CHECKING:
    from benchqueue.services.github_client import GitHubClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoComparison:
    pass


@dataclass(frozen=True)
class Comparison:
    build: BuildRef


Against = Union[NoComparison, Comparison]


@dataclass(frozen=True)
class ComparisonTarget:
    """A parsed ``vs`` argument, before any branch is resolved to a commit."""

    repo: str
    sha: str | None = None
    branch: str | None = None


def parse_comparison(text: str, primary_repo: str) -> ComparisonTarget:
    """Parse a comparison reference.

    Accepted forms: ``owner/repo@sha``, ``owner/repo:branch``, ``owner/repo``
    (default branch) and a bare ``sha`` (same repository as the primary build).
    """
    text = text.strip()
    if SHA_SEPARATOR in text:
        repo, sha = text.split(SHA_SEPARATOR, 1)
        target = ComparisonTarget(repo=repo or primary_repo, sha=sha)
    elif BRANCH_SEPARATOR in text:
        repo, branch = text.split(BRANCH_SEPARATOR, 1)
        target = ComparisonTarget(repo=repo or primary_repo, branch=branch)
    elif "/" in text:
        target = ComparisonTarget(repo=text)
    else:
        target = ComparisonTarget(repo=primary_repo, sha=text)

    if not text or target.sha == "" or target.branch == "" or target.repo.count("/") != 1:
        raise SubmissionValidationError(f"malformed comparison reference: {text!r}")
    return target


def resolve_comparison(target: ComparisonTarget, github: GitHubClient) -> BuildRef:
    if target.sha:
        return BuildRef(repo=target.repo, sha=target.sha)
    try:
        branch = target.branch or github.default_branch(target.repo)
        return BuildRef(repo=target.repo, sha=github.branch_sha(target.repo, branch))
    except httpx.HTTPError as e:
        raise SubmissionValidationError(f"could not resolve comparison build {target.repo}: {e}") from e


class BenchmarkJob(Job):
    func = "runbenchmarks"

    def __init__(self, submission: JobSubmission, tagpred: str, against: Against = NoComparison()):
        if not is_valid_tagpred(tagpred):
            raise SubmissionValidationError(f"invalid tag predicate: {tagpred}")
        super().__init__(submission)
        self.tagpred = tagpred
        self.against = against

    @classmethod
    def from_submission(cls, submission: JobSubmission, github: GitHubClient) -> BenchmarkJob:
        tagpred, againststr = parse_benchmark_args(submission.args)
        if againststr is None:
            return cls(submission, tagpred)
        target = parse_comparison(againststr, submission.build.repo)
        return cls(submission, tagpred, Comparison(resolve_comparison(target, github)))

    @property
    def comparison_build(self) -> BuildRef | None:
        if isinstance(self.against, Comparison):
            return self.against.build
        return None

    def build_for(self, role: Role) -> BuildRef:
        if role is Role.AGAINST:
            if not isinstance(self.against, Comparison):
                raise ValueError(f"{self.summary()} has no comparison build")
            return self.against.build
        return self.submission.build

    def summary(self) -> str:
        result = f"BenchmarkJob {self.submission.build.summary()}"
        if isinstance(self.against, Comparison):
            result = f"{result} vs. {self.against.build.summary()}"
        return result

    def report_dir(self) -> str:
        return snipsha(self.submission.build.sha)

    def report_file(self) -> str:
        name = self.report_dir()
        if isinstance(self.against, Comparison):
            return f"{name}_vs_{snipsha(self.against.build.sha)}"
        return name

    def run(self, ctx: JobContext) -> None:
        prefix = ctx.log_prefix()
        logger.info(f"{prefix} running primary build for {self.summary()}")
        results = JobResults(primary=execute_benchmarks(self, Role.PRIMARY, ctx))
        logger.info(f"{prefix} finished primary build for {self.summary()}")

        if isinstance(self.against, Comparison):
            logger.info(f"{prefix} running comparison build for {self.summary()}")
            results.against = execute_benchmarks(self, Role.AGAINST, ctx)
            logger.info(f"{prefix} finished comparison build for {self.summary()}")
            results.judged = judge(results.primary, results.against)

        logger.info(f"{prefix} reporting results for {self.summary()}")
        report(self, results, ctx)
        logger.info(f"{prefix} completed {self.summary()}")
