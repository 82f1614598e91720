"""Benchmark pipeline: build, shield, execute and collect one build's results."""

from __future__ import annotations

import json
import logging
import shlex
import subprocess
from enum import Enum
from typing import TYPE_CHECKING, Any

from benchqueue.errors import ExecutionError, ResultReadError
from benchqueue.models.benchmark import Measurement, StructuredResult, to_key
from benchqueue.services.builder import build_revision
from benchqueue.services.reporter import upload_logs
from benchqueue.services.shield import cpu_shield

if TYPE_CHECKING:
    from benchqueue.jobs.base import JobContext
    from benchqueue.jobs.benchmark import BenchmarkJob
    from benchqueue.services.nodes import NodeRunner

logger = logging.getLogger(__name__)

# Version output past this marker describes the host environment and is dropped.
VINFO_CUTOFF = "Environment"
VINFO_TIMEOUT = 60


class Role(str, Enum):
    PRIMARY = "primary"
    AGAINST = "against"


def execute_benchmarks(job: BenchmarkJob, role: Role, ctx: JobContext) -> StructuredResult:
    """Run the job's benchmarks against one of its builds on ``ctx.node``.

    1. Build the revision from source, or use the fixed installation.
    2. Shield a CPU for the duration of the run.
    3. Run the benchmark command with output redirected to per-role logs.
    4. Read the result file and record the build's version info.
    """
    config, node, runner = ctx.config, ctx.node, ctx.runner
    submission = job.submission
    build = job.build_for(role)

    builddir: str | None = None
    if config.skip_build:
        executable = config.fixed_executable
    else:
        # Only the primary build of a pull request is built from the merge commit.
        prnumber = submission.prnumber if role is Role.PRIMARY and submission.is_pull_request else None
        builddir = build_revision(runner, config, node, build, role.value, prnumber)
        executable = f"{builddir}/{config.build_executable}"

    try:
        benchname = f"{build.sha}_{role.value}"
        benchout = f"{config.logdir(node)}/{benchname}.out"
        bencherr = f"{config.logdir(node)}/{benchname}.err"
        benchresult = f"{config.resultdir(node)}/{benchname}.json"

        command = config.benchmark_command.format(
            executable=shlex.quote(executable),
            tagpred=shlex.quote(job.tagpred),
            result=shlex.quote(benchresult),
        )
        command = f"{command} > {shlex.quote(benchout)} 2> {shlex.quote(bencherr)}"

        logger.info(f"{ctx.log_prefix()} executing benchmarks for {build.summary()} ({role.value})")
        try:
            with cpu_shield(runner, config) as shielded:
                runner.run(shielded(command))
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as e:
            url = upload_logs(job, ctx, benchname, [benchout, bencherr])
            raise ExecutionError(
                f"Benchmark execution for {build.summary()} ({role.value}) failed: {e}",
                url=url,
            ) from e

        result = read_result(runner, benchresult)
        build.vinfo = capture_vinfo(ctx, executable)
        return result
    finally:
        if builddir is not None:
            runner.remove_tree(builddir)


def read_result(runner: NodeRunner, path: str) -> StructuredResult:
    try:
        text = runner.read_text(path)
    except subprocess.CalledProcessError as e:
        raise ResultReadError(f"Could not read benchmark result file {path}: {(e.stderr or '').strip()}") from e
    try:
        return parse_result(json.loads(text))
    except (ValueError, KeyError, TypeError) as e:
        raise ResultReadError(f"Could not decode benchmark result file {path}: {e}") from e


def parse_result(data: dict[str, Any]) -> StructuredResult:
    """Decode a result document into a StructuredResult.

    Each entry in ``data["benchmarks"]`` has an ``id`` (list of group names
    ending in the benchmark name) and either a list of ``trials`` or the
    measurement fields directly. Trials are reduced to their minimum, which is
    the estimate least affected by scheduling noise.
    """
    result: StructuredResult = {}
    for entry in data["benchmarks"]:
        key = to_key(entry["id"])
        trials = entry.get("trials")
        if trials:
            result[key] = minimum([Measurement(**trial) for trial in trials])
        else:
            result[key] = Measurement(**{k: v for k, v in entry.items() if k != "id"})
    return result


def minimum(trials: list[Measurement]) -> Measurement:
    first = trials[0]
    return Measurement(
        time=min(t.time for t in trials),
        time_tolerance=first.time_tolerance,
        memory=min(t.memory for t in trials),
        memory_tolerance=first.memory_tolerance,
        gctime=min(t.gctime for t in trials),
        allocs=min(t.allocs for t in trials),
    )


def capture_vinfo(ctx: JobContext, executable: str) -> str:
    """Best-effort version description of a build; empty on failure."""
    command = ctx.config.version_command.format(executable=shlex.quote(executable))
    try:
        result = ctx.runner.run(command, check=False, timeout=VINFO_TIMEOUT)
    except (subprocess.SubprocessError, OSError) as e:
        logger.warning(f"{ctx.log_prefix()} could not capture version info: {e}")
        return ""
    if result.returncode != 0:
        logger.warning(f"{ctx.log_prefix()} version command exited with {result.returncode}")
        return ""
    return result.stdout.split(VINFO_CUTOFF)[0].strip()
