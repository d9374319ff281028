"""API endpoints for human hand-off flags."""

from fastapi import APIRouter, Depends, HTTPException

from autoreply.api.dependencies import get_autoreply_engine
from autoreply.models.domain import HandoffRecord
from autoreply.services.engine import AutoReplyEngine

router = APIRouter(prefix="/handoffs", tags=["handoffs"])


def _require_handoff(engine: AutoReplyEngine):
    if engine.handoff is None:
        raise HTTPException(status_code=503, detail="Hand-off service not configured")
    return engine.handoff


@router.get("/{conversation_id}", response_model=HandoffRecord)
async def get_handoff(
    conversation_id: str,
    engine: AutoReplyEngine = Depends(get_autoreply_engine),
) -> HandoffRecord:
    """Get the hand-off flag for a conversation.

    Raises:
        HTTPException: If the conversation is not flagged
    """
    record = await _require_handoff(engine).get(conversation_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Conversation not flagged for hand-off")
    return record


@router.delete("/{conversation_id}")
async def clear_handoff(
    conversation_id: str,
    engine: AutoReplyEngine = Depends(get_autoreply_engine),
):
    """Clear the hand-off flag once a human has taken over."""
    await _require_handoff(engine).clear(conversation_id)
    return {"message": "Hand-off cleared"}
