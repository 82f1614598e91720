"""
Shared fixtures and fakes for the benchqueue test suite.

The GitHub collaborator and the node command runner are replaced by in-memory
fakes so that no test touches the network or spawns a subprocess.
"""

import json
import shlex
import subprocess

import pytest

from benchqueue.config import Config, NodeConfig
from benchqueue.errors import UploadError
from benchqueue.jobs.base import Job
from benchqueue.models.build import BuildRef, JobSubmission, SubmissionKind
from benchqueue.services.nodes import NodeRunner

PRIMARY_SHA = "a" * 40
AGAINST_SHA = "b" * 40
REPORT_URL_BASE = "https://github.com/org/reports/blob/master"


def make_config(**overrides) -> Config:
    data = dict(
        nodes=[NodeConfig(name="n1")],
        track_repo="org/proj",
        report_repo="org/reports",
        workdir="/work",
        skip_build=True,
        fixed_executable="/opt/bench/bin/bench",
        use_cset=False,
        poll_interval=0.0,
        idle_interval=0.01,
        admin_mention="cc @admin",
    )
    data.update(overrides)
    return Config(**data)


def make_submission(
    config: Config,
    args: str = "ALL",
    fromkind: SubmissionKind = SubmissionKind.COMMIT,
    prnumber: int | None = None,
    sha: str = PRIMARY_SHA,
    repo: str = "org/proj",
) -> JobSubmission:
    return JobSubmission(
        config=config,
        func="runbenchmarks",
        args=args,
        build=BuildRef(repo=repo, sha=sha),
        url=f"https://github.com/{repo}/commit/{sha}#comment-1",
        fromkind=fromkind,
        prnumber=prnumber,
    )


def result_doc(times: dict[tuple, float], memory: int = 1024) -> str:
    return json.dumps(
        {
            "benchmarks": [
                {"id": list(key), "time": t, "memory": memory, "allocs": 4, "gctime": 0.0}
                for key, t in times.items()
            ]
        }
    )


class FakeGitHub:
    """Records every status, comment and upload."""

    def __init__(self):
        self.statuses: list[tuple[str, str, str]] = []
        self.comments: list[str] = []
        self.uploads: dict[str, str] = {}
        self.fail_uploads = False
        self.default_branches: dict[str, str] = {}
        self.branches: dict[tuple[str, str], str] = {}
        self.pulls: dict[int, dict] = {}

    def reply_status(self, submission, state, description, target_url=""):
        self.statuses.append((state, description, target_url))

    def reply_comment(self, submission, text):
        self.comments.append(text)

    def upload_report_file(self, path, content, message):
        if self.fail_uploads:
            raise UploadError(f"upload of {path} refused")
        self.uploads[path] = content
        return f"{REPORT_URL_BASE}/{path}"

    def default_branch(self, repo):
        return self.default_branches.get(repo, "main")

    def branch_sha(self, repo, branch):
        return self.branches[(repo, branch)]

    def pull_request(self, repo, number):
        return self.pulls[number]


class FakeRunner(NodeRunner):
    """Answers node commands from an in-memory file table.

    Any command containing one of ``fail_on`` exits with status 1.
    """

    def __init__(self, node: NodeConfig, files: dict[str, str] | None = None, fail_on=()):
        super().__init__(node)
        self.files = files or {}
        self.fail_on = list(fail_on)
        self.commands: list[str] = []
        self.version_output = "Version 1.2.3\nCommit abcdef\nEnvironment:\n  HOME=/secret\n"

    def run(self, command, *, check=True, timeout=None):
        self.commands.append(command)
        returncode, stdout, stderr = 0, "", ""
        if any(pattern in command for pattern in self.fail_on):
            returncode, stderr = 1, f"boom: {command}"
        elif command.startswith(("cat ", "tail ")):
            path = shlex.split(command)[-1]
            if path in self.files:
                stdout = self.files[path]
            else:
                returncode, stderr = 1, f"{path}: No such file or directory"
        elif "--version" in command:
            stdout = self.version_output
        if check and returncode:
            raise subprocess.CalledProcessError(returncode, command, stdout, stderr)
        return subprocess.CompletedProcess(command, returncode, stdout, stderr)


class StubJob(Job):
    func = "stub"

    def __init__(self, submission, error: Exception | None = None):
        super().__init__(submission)
        self.error = error
        self.ran_on: str | None = None

    @classmethod
    def from_submission(cls, submission, github):
        return cls(submission)

    def summary(self):
        return f"StubJob {self.submission.build.summary()}"

    def run(self, ctx):
        self.ran_on = ctx.node.name
        if self.error is not None:
            raise self.error


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def runner(config):
    return FakeRunner(config.nodes[0])
