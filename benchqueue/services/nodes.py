"""Shell command execution on worker nodes.

A node without a host runs commands locally through the shell; a node with a
host runs them over ssh. Everything the pipeline does on a node, including
filesystem access, goes through ``NodeRunner.run``.
"""

from __future__ import annotations

import logging
import shlex
import subprocess

from benchqueue.config import Config, NodeConfig

logger = logging.getLogger(__name__)


class NodeRunner:
    def __init__(self, node: NodeConfig, timeout: float | None = None):
        self.node = node
        self.timeout = timeout

    def run(
        self,
        command: str,
        *,
        check: bool = True,
        timeout: float | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a shell command on the node and capture its output.

        Raises subprocess.CalledProcessError on a non-zero exit when ``check``
        is set, and subprocess.TimeoutExpired when the command overruns.
        """
        logger.debug(f"[node {self.node.name}] $ {command}")
        if self.node.host:
            return subprocess.run(
                ["ssh", "-o", "BatchMode=yes", self.node.host, command],
                capture_output=True,
                text=True,
                check=check,
                timeout=timeout or self.timeout,
            )
        return subprocess.run(
            command,
            shell=True,
            capture_output=True,
            text=True,
            check=check,
            timeout=timeout or self.timeout,
        )

    def makedirs(self, *paths: str) -> None:
        self.run("mkdir -p " + " ".join(shlex.quote(p) for p in paths))

    def read_text(self, path: str) -> str:
        return self.run(f"cat {shlex.quote(path)}").stdout

    def tail(self, path: str, lines: int) -> str:
        return self.run(f"tail -n {lines} {shlex.quote(path)}").stdout

    def remove_tree(self, path: str) -> None:
        result = self.run(f"rm -rf {shlex.quote(path)}", check=False)
        if result.returncode != 0:
            logger.warning(f"[node {self.node.name}] could not remove {path}: {result.stderr.strip()}")


def persist_dirs(config: Config, node: NodeConfig, runner: NodeRunner) -> None:
    """Create the node's working directories if they are missing. Idempotent."""
    runner.makedirs(
        config.node_workdir(node),
        config.logdir(node),
        config.resultdir(node),
        config.builddir(node),
    )
