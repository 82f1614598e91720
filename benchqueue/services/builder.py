"""Source builds of the revision under test."""

from __future__ import annotations

import logging
import shlex
import subprocess

from benchqueue.config import Config, NodeConfig
from benchqueue.errors import BuildError
from benchqueue.models.build import BuildRef, snipsha
from benchqueue.services.nodes import NodeRunner

logger = logging.getLogger(__name__)

# Seconds allowed for a single build step.
BUILD_TIMEOUT = 3600


def build_revision(
    runner: NodeRunner,
    config: Config,
    node: NodeConfig,
    build: BuildRef,
    role: str,
    prnumber: int | None = None,
) -> str:
    """Clone and build a revision into an isolated directory on the node.

    When ``prnumber`` is given the merge result of that pull request is built
    instead of ``build.sha``. Returns the build directory.
    """
    builddir = f"{config.builddir(node)}/{snipsha(build.sha)}_{role}"
    q = shlex.quote(builddir)

    if prnumber is not None:
        steps = [
            f"git clone --quiet https://github.com/{config.track_repo}.git {q}",
            f"git -C {q} fetch --quiet origin +refs/pull/{prnumber}/merge:pr-{prnumber}-merge",
            f"git -C {q} checkout --quiet pr-{prnumber}-merge",
        ]
    else:
        steps = [
            f"git clone --quiet https://github.com/{build.repo}.git {q}",
            f"git -C {q} checkout --quiet {shlex.quote(build.sha)}",
        ]
    steps.append(f"cd {q} && {config.build_command}")

    runner.remove_tree(builddir)
    logger.info(f"[node {node.name}] building {build.summary()} in {builddir}")
    for step in steps:
        try:
            runner.run(step, timeout=BUILD_TIMEOUT)
        except subprocess.CalledProcessError as e:
            raise BuildError(
                f"Build of {build.summary()} failed at `{step}` (exit {e.returncode}):\n{_tail(e.stderr)}"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise BuildError(f"Build of {build.summary()} timed out after {BUILD_TIMEOUT}s at `{step}`") from e
    return builddir


def _tail(text: str | None, lines: int = 40) -> str:
    if not text:
        return ""
    return "\n".join(text.rstrip().splitlines()[-lines:])
