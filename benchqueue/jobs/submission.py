"""Conversion of GitHub webhook events into job submissions."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

import httpx

from benchqueue.config import Config
from benchqueue.errors import SubmissionValidationError
from benchqueue.models.build import BuildRef, JobSubmission, SubmissionKind, WebhookEvent

if TYPE_CHECKING:
    from benchqueue.services.github_client import GitHubClient

logger = logging.getLogger(__name__)

PHRASE_PATTERN = re.compile(r"^(\w+)\((.*)\)$", re.DOTALL)


def parse_phrase(phrase: str) -> tuple[str, str]:
    """Split a trigger phrase such as `runbenchmarks("array")` into name and arguments."""
    match = PHRASE_PATTERN.match(phrase.strip().strip("`").strip())
    if not match:
        raise SubmissionValidationError(f"malformed trigger phrase: {phrase}")
    return match.group(1), match.group(2).strip()


def event_text(event: WebhookEvent) -> str:
    """Return the free text of an event in which a trigger phrase may appear."""
    if event.kind == "pull_request":
        return event.payload.get("pull_request", {}).get("body") or ""
    return event.payload.get("comment", {}).get("body") or ""


def find_trigger(config: Config, event: WebhookEvent) -> str | None:
    match = re.search(config.trigger, event_text(event))
    return match.group(0) if match else None


def submission_from_event(
    config: Config,
    event: WebhookEvent,
    phrase: str,
    github: GitHubClient,
) -> JobSubmission:
    func, args = parse_phrase(phrase)
    payload = event.payload
    prnumber: int | None = None

    try:
        if event.kind == "commit_comment":
            comment = payload["comment"]
            build = BuildRef(repo=payload["repository"]["full_name"], sha=comment["commit_id"])
            url = comment["html_url"]
            fromkind = SubmissionKind.COMMIT
        elif event.kind == "pull_request_review_comment":
            pr = payload["pull_request"]
            build = BuildRef(repo=pr["head"]["repo"]["full_name"], sha=pr["head"]["sha"])
            url = payload["comment"]["html_url"]
            prnumber = pr["number"]
            fromkind = SubmissionKind.PULL_REQUEST
        elif event.kind == "issue_comment":
            prnumber = payload["issue"]["number"]
            pr = github.pull_request(payload["repository"]["full_name"], prnumber)
            build = BuildRef(repo=pr["head"]["repo"]["full_name"], sha=pr["head"]["sha"])
            url = payload["comment"]["html_url"]
            fromkind = SubmissionKind.PULL_REQUEST
        elif event.kind == "pull_request":
            pr = payload["pull_request"]
            build = BuildRef(repo=pr["head"]["repo"]["full_name"], sha=pr["head"]["sha"])
            url = pr["html_url"]
            prnumber = pr["number"]
            fromkind = SubmissionKind.PULL_REQUEST
        else:
            raise SubmissionValidationError(f"unsupported event kind: {event.kind}")
    except (KeyError, TypeError) as e:
        raise SubmissionValidationError(f"malformed {event.kind} payload: missing {e}") from e
    except httpx.HTTPError as e:
        raise SubmissionValidationError(f"could not look up pull request #{prnumber}: {e}") from e

    return JobSubmission(
        config=config,
        func=func,
        args=args,
        build=build,
        url=url,
        fromkind=fromkind,
        prnumber=prnumber,
    )
