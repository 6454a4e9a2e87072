"""Read-only cache introspection and a clear-all action."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.chat_orchestrator.container import Services
from src.memory_core.models import CacheStats

from .deps import current_user_id, get_services

router = APIRouter(prefix="/cache", tags=["cache"])


class CacheStatsResponse(BaseModel):
    cache: CacheStats
    timestamp: str


class CacheClearedResponse(BaseModel):
    message: str
    timestamp: str


@router.get("/stats", response_model=CacheStatsResponse)
async def cache_stats(
    _user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> CacheStatsResponse:
    return CacheStatsResponse(
        cache=services.cache.stats(),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.delete("", response_model=CacheClearedResponse)
async def clear_cache(
    _user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> CacheClearedResponse:
    services.cache.clear_all()
    return CacheClearedResponse(
        message="Cache cleared successfully",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
