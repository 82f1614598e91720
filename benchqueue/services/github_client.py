"""GitHub API client wrapper.

Status updates and comments are best-effort: HTTP failures are logged and
never raised to the caller. Report uploads raise UploadError so that the
reporter can degrade to "no URL".
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import httpx

from benchqueue.config import Config
from benchqueue.errors import UploadError
from benchqueue.models.build import JobSubmission

logger = logging.getLogger(__name__)

STATUS_CONTEXT = "benchqueue"
# GitHub truncates longer status descriptions.
MAX_DESCRIPTION = 140
REQUEST_TIMEOUT = 30


class GitHubClient:
    """Wrapper around the GitHub REST API for benchqueue-specific operations."""

    def __init__(self, config: Config, transport: httpx.BaseTransport | None = None):
        self.config = config
        headers = {"Accept": "application/vnd.github+json"}
        if config.github_token:
            headers["Authorization"] = f"Bearer {config.github_token}"
        self.client = httpx.Client(
            base_url=config.github_api,
            headers=headers,
            timeout=REQUEST_TIMEOUT,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    # Status reporting.

    def reply_status(
        self,
        submission: JobSubmission,
        state: str,
        description: str,
        target_url: str = "",
    ) -> None:
        body = {
            "state": state,
            "description": description[:MAX_DESCRIPTION],
            "context": STATUS_CONTEXT,
        }
        if target_url:
            body["target_url"] = target_url
        try:
            resp = self.client.post(
                f"/repos/{self.config.track_repo}/statuses/{submission.build.sha}",
                json=body,
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to set {state} status on {submission.build.summary()}: {e}")

    def reply_comment(self, submission: JobSubmission, text: str) -> None:
        if submission.is_pull_request:
            path = f"/repos/{self.config.track_repo}/issues/{submission.prnumber}/comments"
        else:
            path = f"/repos/{self.config.track_repo}/commits/{submission.build.sha}/comments"
        try:
            resp = self.client.post(path, json={"body": text})
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to comment on {submission.url}: {e}")

    # Report repository.

    def upload_report_file(self, path: str, content: str, message: str) -> str:
        """Create or replace a file in the report repository and return its URL."""
        url = f"/repos/{self.config.report_repo}/contents/{path}"
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode()).decode(),
        }
        try:
            existing = self.client.get(url)
            if existing.status_code == 200:
                body["sha"] = existing.json()["sha"]
            resp = self.client.put(url, json=body)
            resp.raise_for_status()
            return resp.json()["content"]["html_url"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise UploadError(f"Failed to upload {path} to {self.config.report_repo}: {e}") from e

    # Lookups.

    def pull_request(self, repo: str, number: int) -> dict[str, Any]:
        resp = self.client.get(f"/repos/{repo}/pulls/{number}")
        resp.raise_for_status()
        return resp.json()

    def default_branch(self, repo: str) -> str:
        resp = self.client.get(f"/repos/{repo}")
        resp.raise_for_status()
        return resp.json()["default_branch"]

    def branch_sha(self, repo: str, branch: str) -> str:
        resp = self.client.get(f"/repos/{repo}/branches/{branch}")
        resp.raise_for_status()
        return resp.json()["commit"]["sha"]
