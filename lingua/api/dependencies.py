from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request

from lingua.container import EngineContainer
from lingua.session.manager import LearningSessionManager


def get_container(request: Request) -> EngineContainer:
    """FastAPI dependency for the engine wired at startup."""
    return request.app.state.container


def get_manager(container: EngineContainer = Depends(get_container)) -> LearningSessionManager:
    return container.manager


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """User identity supplied by the upstream auth layer."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()
