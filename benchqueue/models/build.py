"""Build and submission data models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from benchqueue.config import Config

SHA_SEPARATOR = "@"
BRANCH_SEPARATOR = ":"


def snipsha(sha: str) -> str:
    return sha[:7]


class BuildRef(BaseModel):
    """One buildable revision. ``vinfo`` is filled in after execution."""

    repo: str
    sha: str
    vinfo: str = ""

    def summary(self) -> str:
        return f"{self.repo}{SHA_SEPARATOR}{snipsha(self.sha)}"

    def name(self) -> str:
        return f"{self.repo}{SHA_SEPARATOR}{self.sha}"

    def link(self) -> str:
        return f"https://github.com/{self.repo}/commit/{self.sha}"


class SubmissionKind(str, Enum):
    PULL_REQUEST = "pr"
    COMMIT = "commit"


class WebhookEvent(BaseModel):
    kind: str
    payload: dict[str, Any]

    @property
    def repo(self) -> str:
        return self.payload.get("repository", {}).get("full_name", "")


class JobSubmission(BaseModel):
    model_config = ConfigDict(frozen=True)

    config: Config
    func: str
    args: str
    build: BuildRef
    url: str
    fromkind: SubmissionKind
    prnumber: int | None = None

    @property
    def is_pull_request(self) -> bool:
        return self.fromkind == SubmissionKind.PULL_REQUEST
