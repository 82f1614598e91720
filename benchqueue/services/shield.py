"""CPU shielding with cset.

Requires passwordless sudo for cset on every node, e.g. a sudoers entry
``user ALL=(ALL:ALL) NOPASSWD:/usr/bin/cset``.
"""

from __future__ import annotations

import contextlib
import logging
import shlex
from collections.abc import Callable, Iterator

from benchqueue.config import Config
from benchqueue.services.nodes import NodeRunner

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def cpu_shield(runner: NodeRunner, config: Config) -> Iterator[Callable[[str], str]]:
    """Shield ``config.cpus[0]`` from the OS for the duration of the block.

    Yields a function that wraps a shell command so that it executes on the
    shielded CPU. The shield is reset on exit, even if the block raised.
    """
    if not config.use_cset:
        yield lambda command: command
        return

    cpu = config.cpus[0]
    runner.run(f"sudo cset shield -c {cpu}")
    try:
        yield lambda command: f"sudo cset shield -e -- sh -c {shlex.quote(command)}"
    finally:
        result = runner.run("sudo cset shield --reset", check=False)
        if result.returncode != 0:
            logger.warning(f"[node {runner.node.name}] failed to reset CPU shield: {result.stderr.strip()}")
