"""Result reporting: data and Markdown uploads, final status and comment."""

from __future__ import annotations

import io
import json
import logging
import subprocess
from typing import TYPE_CHECKING, Any

from benchqueue.errors import UploadError
from benchqueue.models.benchmark import (
    Classification,
    JobResults,
    Judgement,
    Measurement,
    from_key,
)
from benchqueue.services.judge import is_regression

if TYPE_CHECKING:
    from benchqueue.jobs.base import JobContext
    from benchqueue.jobs.benchmark import BenchmarkJob

logger = logging.getLogger(__name__)

REGRESS_MARK = ":x:"
IMPROVE_MARK = ":white_check_mark:"


def report(job: BenchmarkJob, results: JobResults, ctx: JobContext) -> None:
    """Upload the job's results and post its final status and comment."""
    submission = job.submission
    github = ctx.github
    mention = ctx.config.admin_mention

    if not results.primary:
        github.reply_status(submission, "error", "no benchmarks were executed")
        github.reply_comment(
            submission,
            f"[Your benchmark job]({submission.url}) has completed, but no benchmarks were "
            f"actually executed. Perhaps your tag predicate contains misspelled tags? {mention}",
        )
        return

    target_url = ""
    datapath = f"{job.report_dir()}/{job.report_file()}.json"
    try:
        target_url = github.upload_report_file(
            datapath,
            json.dumps(results.to_json()),
            f"upload result data for {job.summary()}",
        )
        logger.info(f"{ctx.log_prefix()} uploaded {datapath} to {ctx.config.report_repo}")
    except UploadError as e:
        logger.error(f"{ctx.log_prefix()} error when uploading result JSON file: {e}")

    if results.judged is not None:
        found_regressions = is_regression(results.judged)
        state = "failure" if found_regressions else "success"
        status = (
            "possible performance regressions were detected"
            if found_regressions
            else "no performance regressions were detected"
        )
    else:
        state = "success"
        status = "successfully executed benchmarks"

    reportpath = f"{job.report_dir()}/{job.report_file()}.md"
    try:
        target_url = github.upload_report_file(
            reportpath,
            render_report(job, results),
            f"upload markdown report for {job.summary()}",
        )
        logger.info(f"{ctx.log_prefix()} uploaded {reportpath} to {ctx.config.report_repo}")
    except UploadError as e:
        logger.error(f"{ctx.log_prefix()} error when uploading markdown report: {e}")

    github.reply_status(submission, state, status, target_url)
    if target_url:
        comment = (
            f"[Your benchmark job]({submission.url}) has completed - {status}. "
            f"A full report can be found [here]({target_url}). {mention}"
        )
    else:
        comment = (
            f"[Your benchmark job]({submission.url}) has completed - {status}, but something "
            f"went wrong when trying to upload the result data. {mention}"
        )
    github.reply_comment(submission, comment)


def upload_logs(job: BenchmarkJob, ctx: JobContext, benchname: str, paths: list[str]) -> str:
    """Upload the tails of a failed run's log files. Returns "" on failure."""
    out = io.StringIO()
    for path in paths:
        out.write(f"==> {path} <==\n")
        try:
            out.write(ctx.runner.tail(path, ctx.config.log_tail_lines))
        except (subprocess.SubprocessError, OSError) as e:
            out.write(f"(unavailable: {e})\n")
        out.write("\n")

    logpath = f"{job.report_dir()}/logs/{benchname}.log"
    try:
        url = ctx.github.upload_report_file(logpath, out.getvalue(), f"upload logs for {job.summary()}")
    except UploadError as e:
        logger.error(f"{ctx.log_prefix()} error when uploading logs: {e}")
        return ""
    logger.info(f"{ctx.log_prefix()} uploaded {logpath} to {ctx.config.report_repo}")
    return url


# Markdown report generation.


def render_report(job: BenchmarkJob, results: JobResults) -> str:
    build = job.submission.build
    against = job.comparison_build
    joblink = f"[{build.name()}]({build.link()})"
    if against is not None:
        joblink = f"{joblink} vs [{against.name()}]({against.link()})"
        table: dict[Any, Any] = results.judged or {}
    else:
        table = results.primary

    out = io.StringIO()
    out.write(
        "# Benchmark Report\n\n"
        "## Job Properties\n\n"
        f"*Commit(s):* {joblink}\n\n"
        f"*Tag Predicate:* `{job.tagpred}`\n\n"
        f"*Triggered By:* [link]({job.submission.url})\n\n"
        "## Results\n\n"
        "The values listed in the `ID` column have the structure "
        "`[parent_group, child_group, ..., key]`.\n\n"
        "The percentages accompanying time and memory values in the below table are noise "
        "tolerances. The \"true\" time/memory value for a given benchmark is expected to fall "
        "within this percentage of the reported value.\n\n"
    )

    if against is not None:
        out.write(
            "The values in the below table take the form `primary_result / comparison_result`. "
            f"A ratio greater than `1.0` denotes a possible regression (marked with {REGRESS_MARK}), "
            f"while a ratio less than `1.0` denotes a possible improvement (marked with {IMPROVE_MARK}).\n\n"
            "Only significant results are shown below, so an empty table means that all "
            "benchmark results remained invariant between builds.\n\n"
            "| ID | time ratio | memory ratio |\n"
            "|----|------------|--------------|\n"
        )
    else:
        out.write(
            "| ID | time | GC time | memory | allocations |\n"
            "|----|------|---------|--------|-------------|\n"
        )

    entries = sorted(table.items(), key=lambda kv: result_sort_key(kv[0]))
    for key, value in entries:
        if against is None or value.is_regression or value.is_improvement:
            out.write(result_row(key, value) + "\n")
    out.write("\n")

    out.write(
        "## Benchmark Group List\n\n"
        "Here's a list of all the benchmark groups executed by this job:\n\n"
    )
    groups: list[Any] = []
    for key, _ in entries:
        group = key[:-1] if isinstance(key, tuple) else ()
        if group not in groups:
            groups.append(group)
    for group in groups:
        out.write(f"- `{idrepr(group)}`\n")
    out.write("\n")

    out.write(f"## Version Info\n\n#### Primary Build\n\n```\n{build.vinfo}\n```\n")
    if against is not None:
        out.write(f"\n#### Comparison Build\n\n```\n{against.vinfo}\n```\n")
    return out.getvalue()


def result_sort_key(key: Any) -> tuple:
    """Sort key for result IDs: tuples before non-tuples, element-wise order.

    A tuple sorts before any tuple it is a prefix of. Scalars of different
    types are ordered by type name so that mixed IDs never fail to sort.
    """
    if isinstance(key, tuple):
        return (0, tuple(result_sort_key(item) for item in key))
    if isinstance(key, (int, float)) and not isinstance(key, bool):
        return (1, "number", key)
    return (1, type(key).__name__, key)


def idrepr(key: Any) -> str:
    return json.dumps(from_key(key))


def result_row(key: Any, value: Measurement | Judgement) -> str:
    if isinstance(value, Judgement):
        timestr = f"{value.time_ratio:.2f} ({prettypercent(value.time_tolerance)}) {resultmark(value.time)}"
        memstr = f"{value.memory_ratio:.2f} ({prettypercent(value.memory_tolerance)}) {resultmark(value.memory)}"
        return f"| `{idrepr(key)}` | {timestr.rstrip()} | {memstr.rstrip()} |"
    timestr = f"{prettytime(value.time)} ({prettypercent(value.time_tolerance)})"
    memstr = f"{prettymemory(value.memory)} ({prettypercent(value.memory_tolerance)})"
    return f"| `{idrepr(key)}` | {timestr} | {prettytime(value.gctime)} | {memstr} | {value.allocs} |"


def resultmark(classification: Classification) -> str:
    if classification is Classification.REGRESSION:
        return REGRESS_MARK
    if classification is Classification.IMPROVEMENT:
        return IMPROVE_MARK
    return ""


def prettypercent(p: float) -> str:
    return f"{p * 100:.2f}%"


def prettytime(t: float) -> str:
    """Format a duration given in nanoseconds."""
    if t < 1e3:
        value, units = t, "ns"
    elif t < 1e6:
        value, units = t / 1e3, "μs"
    elif t < 1e9:
        value, units = t / 1e6, "ms"
    else:
        value, units = t / 1e9, "s"
    return f"{value:.3f} {units}"


def prettymemory(b: float) -> str:
    if b < 1024:
        return f"{int(b)} bytes"
    if b < 1024**2:
        value, units = b / 1024, "KiB"
    elif b < 1024**3:
        value, units = b / 1024**2, "MiB"
    else:
        value, units = b / 1024**3, "GiB"
    return f"{value:.2f} {units}"
