"""benchqueue server: webhook intake, job queue and one worker per node.

Run with: python -m benchqueue.server --config benchqueue.toml --port 8000
"""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable

import uvicorn
from fastapi import FastAPI

from benchqueue import __version__
from benchqueue.config import Config, NodeConfig, load_config
from benchqueue.errors import SubmissionValidationError
from benchqueue.jobs import JOB_KINDS
from benchqueue.jobs.submission import submission_from_event
from benchqueue.models.build import WebhookEvent
from benchqueue.routes.webhook import router as webhook_router
from benchqueue.services.github_client import GitHubClient
from benchqueue.services.nodes import NodeRunner
from benchqueue.services.queue import JobQueue
from benchqueue.services.worker import NodeWorker

logger = logging.getLogger(__name__)


class Server:
    """Owns the configuration, the job queue and the node workers."""

    def __init__(
        self,
        config: Config,
        github: GitHubClient | None = None,
        runner_factory: Callable[[NodeConfig], NodeRunner] = NodeRunner,
    ):
        self.config = config
        self.github = github if github is not None else GitHubClient(config)
        self.queue = JobQueue()
        self.workers = [
            NodeWorker(config, node, self.queue, self.github, runner_factory(node)) for node in config.nodes
        ]

    def handle_event(self, event: WebhookEvent, phrase: str) -> tuple[int, str]:
        """Validate a triggered event and queue a job for every kind that accepts it.

        Returns an HTTP status code and message for the webhook response.
        """
        logger.info(f"received job submission with phrase {phrase}")
        payload = event.payload
        if event.kind == "issue_comment" and "pull_request" not in payload.get("issue", {}):
            return 400, "jobs cannot be triggered from issue comments (only PRs or commits)"
        if "action" in payload and payload["action"] not in ("created", "opened"):
            return 204, "no action taken (submission was from an edit, close, or delete)"

        try:
            submission = submission_from_event(self.config, event, phrase, self.github)
        except SubmissionValidationError as e:
            logger.warning(f"rejected submission: {e}")
            return 400, str(e)

        added = False
        for kind in JOB_KINDS:
            if not kind.is_valid(submission):
                continue
            try:
                job = kind.from_submission(submission, self.github)
            except SubmissionValidationError as e:
                logger.warning(f"failed to construct {kind.__name__} from submission: {e}")
                continue
            self.github.reply_status(submission, "pending", f"job added to queue: {job.summary()}")
            self.queue.push(job)
            added = True

        if not added:
            self.github.reply_status(submission, "error", "invalid job submission; check syntax")
            return 400, "invalid job submission"
        return 202, "received job submission"

    def start(self) -> None:
        for worker in self.workers:
            worker.start()
        logger.info(f"started {len(self.workers)} node workers")

    def stop(self) -> None:
        for worker in self.workers:
            worker.stop()


def create_app(server: Server) -> FastAPI:
    app = FastAPI(
        title="benchqueue",
        version=__version__,
        description="Benchmark job scheduler driven by GitHub comments",
    )
    app.state.server = server
    app.include_router(webhook_router, prefix="/api")

    @app.get("/api/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "version": __version__,
            "workers": {w.node.name: w.is_alive() for w in server.workers},
        }

    @app.get("/api/queue")
    async def queue():
        """Pending jobs in queue order."""
        return {"pending": server.queue.summaries()}

    return app


def main():
    parser = argparse.ArgumentParser(description="benchqueue server")
    parser.add_argument("--config", type=str, required=True, help="Path to the TOML config file")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)
    server = Server(config)
    server.start()

    uvicorn.run(
        create_app(server),
        host=args.host,
        port=args.port,
        log_level="info",
        access_log=False,
    )


if __name__ == "__main__":
    main()
