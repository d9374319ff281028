"""Shared FastAPI dependencies."""

from fastapi import HTTPException, Request

from autoreply.services.engine import AutoReplyEngine


def get_autoreply_engine(request: Request) -> AutoReplyEngine:
    """Get the engine created during application startup.

    Raises:
        HTTPException: If the engine has not been initialized (returns 503)
    """
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Auto-reply engine not initialized")
    return engine
