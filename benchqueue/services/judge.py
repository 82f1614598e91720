"""Comparison of two benchmark results within noise tolerances."""

from __future__ import annotations

import math

from benchqueue.models.benchmark import (
    Classification,
    JudgedResult,
    Judgement,
    Measurement,
    StructuredResult,
)


def ratio(primary: float, against: float) -> float:
    if against == 0:
        return 1.0 if primary == 0 else math.inf
    return primary / against


def classify(r: float, tolerance: float) -> Classification:
    if r > 1.0 + tolerance:
        return Classification.REGRESSION
    if r < 1.0 - tolerance:
        return Classification.IMPROVEMENT
    return Classification.INVARIANT


def judge_measurement(primary: Measurement, against: Measurement) -> Judgement:
    time_tol = max(primary.time_tolerance, against.time_tolerance)
    memory_tol = max(primary.memory_tolerance, against.memory_tolerance)
    time_ratio = ratio(primary.time, against.time)
    memory_ratio = ratio(primary.memory, against.memory)
    return Judgement(
        time_ratio=time_ratio,
        memory_ratio=memory_ratio,
        time=classify(time_ratio, time_tol),
        memory=classify(memory_ratio, memory_tol),
        time_tolerance=time_tol,
        memory_tolerance=memory_tol,
    )


def judge(primary: StructuredResult, against: StructuredResult) -> JudgedResult:
    """Judge every key present in both results. Other keys are dropped."""
    return {key: judge_measurement(value, against[key]) for key, value in primary.items() if key in against}


def is_regression(judged: JudgedResult) -> bool:
    return any(j.is_regression for j in judged.values())
