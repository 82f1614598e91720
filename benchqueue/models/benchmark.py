"""Benchmark result data models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

# Hierarchical benchmark identifier, e.g. ("array", "reductions", "sum").
ResultKey = tuple


class Classification(str, Enum):
    IMPROVEMENT = "improvement"
    REGRESSION = "regression"
    INVARIANT = "invariant"


class Measurement(BaseModel):
    model_config = ConfigDict(frozen=True)

    time: float  # nanoseconds
    time_tolerance: float = 0.05
    memory: int = 0  # bytes
    memory_tolerance: float = 0.01
    gctime: float = 0.0
    allocs: int = 0


class Judgement(BaseModel):
    model_config = ConfigDict(frozen=True)

    time_ratio: float
    memory_ratio: float
    time: Classification
    memory: Classification
    time_tolerance: float
    memory_tolerance: float

    @property
    def is_regression(self) -> bool:
        return Classification.REGRESSION in (self.time, self.memory)

    @property
    def is_improvement(self) -> bool:
        return Classification.IMPROVEMENT in (self.time, self.memory)


StructuredResult = dict[ResultKey, Measurement]
JudgedResult = dict[ResultKey, Judgement]


def to_key(raw: Any) -> Any:
    """Convert a JSON identifier (nested lists) into a hashable tuple key."""
    if isinstance(raw, list):
        return tuple(to_key(item) for item in raw)
    return raw


def from_key(key: Any) -> Any:
    if isinstance(key, tuple):
        return [from_key(item) for item in key]
    return key


def dump_results(results: dict[ResultKey, BaseModel]) -> list[dict[str, Any]]:
    """Serialize a keyed result mapping into JSON-ready rows."""
    return [{"id": from_key(key), **value.model_dump(mode="json")} for key, value in results.items()]


@dataclass
class JobResults:
    primary: StructuredResult
    against: StructuredResult | None = None
    judged: JudgedResult | None = None

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {"primary": dump_results(self.primary)}
        if self.against is not None:
            data["against"] = dump_results(self.against)
        if self.judged is not None:
            data["judged"] = dump_results(self.judged)
        return data
