"""Webhook endpoint receiving Feishu event callbacks."""

import logging

from fastapi import APIRouter, Depends, Request

from autoreply.adapters.feishu import FeishuClient
from autoreply.api.dependencies import get_autoreply_engine
from autoreply.models.domain import EventEnvelope
from autoreply.services.engine import AutoReplyEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


@router.post("")
async def receive_event(
    request: Request,
    engine: AutoReplyEngine = Depends(get_autoreply_engine),
) -> dict:
    """Receive an event callback.

    Feishu sends a one-off ``url_verification`` challenge when the callback
    URL is configured, then v2 event bodies. Every request is answered with
    200 because the sender has no use for an error on malformed input.

    Args:
        request: FastAPI request containing the callback body
        engine: Auto-reply engine

    Returns:
        Challenge echo or acknowledgement
    """
    try:
        body = await request.json()
    except ValueError:
        logger.warning("Ignoring event callback with non-JSON body")
        return {"message": "ignored"}

    if not isinstance(body, dict):
        logger.warning("Ignoring event callback with non-object body")
        return {"message": "ignored"}

    if "encrypt" in body:
        logger.warning("Ignoring encrypted event callback, disable event encryption for this app")
        return {"message": "ignored"}

    if body.get("type") == "url_verification":
        challenge = EventEnvelope(
            verification_token=body.get("token", ""), event_type="url_verification"
        )
        if not engine.verifier.verify(challenge):
            logger.warning("Rejected url_verification challenge with bad token")
            return {"message": "ignored"}
        return {"challenge": body.get("challenge", "")}

    await engine.handle_event(FeishuClient.to_envelope(body))
    return {"message": "received"}
