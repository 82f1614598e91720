"""Pydantic data models for builds, submissions and benchmark results."""

from benchqueue.models.benchmark import (
    Classification,
    JudgedResult,
    Judgement,
    Measurement,
    ResultKey,
    StructuredResult,
)
from benchqueue.models.build import BuildRef, JobSubmission, SubmissionKind, WebhookEvent

__all__ = [
    "BuildRef",
    "Classification",
    "JobSubmission",
    "JudgedResult",
    "Judgement",
    "Measurement",
    "ResultKey",
    "StructuredResult",
    "SubmissionKind",
    "WebhookEvent",
]
