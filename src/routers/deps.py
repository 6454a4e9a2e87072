"""Request-scoped access to the services built at startup."""

from __future__ import annotations

from fastapi import Header, HTTPException, Request

from src.chat_orchestrator.container import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def current_user_id(x_user_id: str | None = Header(None)) -> str:
    """Opaque current-user provider; authentication happens upstream."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id
