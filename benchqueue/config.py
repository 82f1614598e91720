"""Server configuration.

A single immutable Config is loaded once at startup and passed explicitly
into every component.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_TRIGGER = r"`runbenchmarks\(.*?\)`"


class NodeConfig(BaseModel):
    """A worker node. ``host`` is None for the local machine."""

    model_config = ConfigDict(frozen=True)

    name: str
    host: str | None = None
    workdir: str | None = None


class Config(BaseModel):
    model_config = ConfigDict(frozen=True)

    nodes: list[NodeConfig]
    cpus: list[int] = Field(default=[0], min_length=1)

    # GitHub.
    github_token: str = ""
    webhook_secret: str = ""
    github_api: str = "https://api.github.com"
    track_repo: str
    report_repo: str
    trigger: str = DEFAULT_TRIGGER
    admin_mention: str = "cc @admin"

    # Paths and commands run on the nodes.
    workdir: str = "benchqueue-work"
    skip_build: bool = False
    fixed_executable: str = ""
    build_command: str = "make -j4"
    build_executable: str = "bin/bench"
    benchmark_command: str = "{executable} --tags {tagpred} --output {result}"
    version_command: str = "{executable} --version"
    use_cset: bool = True

    # Scheduling.
    poll_interval: float = 5.0
    idle_interval: float = 1.0
    log_tail_lines: int = Field(default=200, ge=1)

    def node_workdir(self, node: NodeConfig) -> str:
        return node.workdir or self.workdir

    def logdir(self, node: NodeConfig) -> str:
        return f"{self.node_workdir(node)}/logs"

    def resultdir(self, node: NodeConfig) -> str:
        return f"{self.node_workdir(node)}/results"

    def builddir(self, node: NodeConfig) -> str:
        return f"{self.node_workdir(node)}/builds"


def load_config(path: str | Path) -> Config:
    """Load a Config from a TOML file.

    The GitHub token and webhook secret may be supplied through the
    BENCHQUEUE_GITHUB_TOKEN and BENCHQUEUE_WEBHOOK_SECRET environment variables,
    which take precedence over the file.
    """
    with open(path, "rb") as f:
        data = tomllib.load(f)

    token = os.environ.get("BENCHQUEUE_GITHUB_TOKEN")
    if token:
        data["github_token"] = token
    secret = os.environ.get("BENCHQUEUE_WEBHOOK_SECRET")
    if secret:
        data["webhook_secret"] = secret

    config = Config(**data)
    if not config.github_token:
        logger.warning("No GitHub token configured. Status updates and uploads will fail.")
    return config
