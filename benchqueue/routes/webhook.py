"""GitHub webhook intake."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging

from fastapi import APIRouter, Header, HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool

from benchqueue.jobs.submission import find_trigger
from benchqueue.models.build import WebhookEvent

logger = logging.getLogger(__name__)

router = APIRouter()


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Check a ``sha256=<hex>`` signature header. Always passes without a secret."""
    if not secret:
        return True
    if not signature or not signature.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.removeprefix("sha256="))


@router.post("/webhook")
async def webhook(
    request: Request,
    x_github_event: str = Header(...),
    x_hub_signature_256: str | None = Header(None),
) -> Response:
    """Turn a GitHub event carrying a trigger phrase into queued jobs."""
    server = request.app.state.server
    config = server.config
    body = await request.body()

    if not verify_signature(config.webhook_secret, body, x_hub_signature_256):
        raise HTTPException(status_code=400, detail="invalid webhook signature")
    try:
        payload = json.loads(body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail="request body is not valid JSON") from e

    if x_github_event == "ping":
        return Response(content="pong", status_code=200)

    event = WebhookEvent(kind=x_github_event, payload=payload)
    if event.repo != config.track_repo:
        raise HTTPException(status_code=400, detail=f"events from {event.repo!r} are not tracked")

    phrase = find_trigger(config, event)
    if phrase is None:
        return Response(status_code=204)

    status, message = await run_in_threadpool(server.handle_event, event, phrase)
    if status == 204:
        return Response(status_code=204)
    return Response(content=message, status_code=status, media_type="text/plain")
