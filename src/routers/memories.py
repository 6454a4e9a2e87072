"""Memory library: list, search, edit, delete and restore memories."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from src.chat_orchestrator.container import Services
from src.memory_core.errors import AddFailed, NotFound
from src.memory_core.models import Memory

from .deps import current_user_id, get_services

router = APIRouter(prefix="/memories", tags=["memories"])


class MemoryListResponse(BaseModel):
    memories: list[Memory]
    total: int


class MemoryResponse(BaseModel):
    memory: Memory


class UpdateMemoryRequest(BaseModel):
    text: str = Field(..., min_length=1, description="New memory text")


class SuccessResponse(BaseModel):
    success: bool = True


class RestoreResponse(BaseModel):
    memory_ids: list[str]


@router.get("", response_model=MemoryListResponse)
async def list_memories(
    query: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> MemoryListResponse:
    if query:
        memories = await services.gateway.search(user_id, query, limit)
        return MemoryListResponse(memories=memories, total=len(memories))
    result = await services.gateway.get_all_memories(user_id, limit, offset)
    return MemoryListResponse(memories=result.results, total=result.total)


@router.get("/{memory_id}", response_model=MemoryResponse)
async def get_memory(
    memory_id: str,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> MemoryResponse:
    memory = await services.gateway.get_by_id(user_id, memory_id)
    if memory is None:
        raise HTTPException(status_code=404, detail="Memory not found")
    return MemoryResponse(memory=memory)


@router.put("/{memory_id}", response_model=SuccessResponse)
async def update_memory(
    memory_id: str,
    request: UpdateMemoryRequest,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> SuccessResponse:
    if not await services.library.update_memory(user_id, memory_id, request.text):
        raise HTTPException(status_code=500, detail="Failed to update memory")
    return SuccessResponse()


@router.delete("/{memory_id}", response_model=SuccessResponse)
async def delete_memory(
    memory_id: str,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> SuccessResponse:
    if not await services.library.delete_memory(user_id, memory_id):
        raise HTTPException(status_code=500, detail="Failed to delete memory")
    return SuccessResponse()


@router.post("/{memory_id}/restore", response_model=RestoreResponse)
async def restore_memory(
    memory_id: str,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> RestoreResponse:
    try:
        memory_ids = await services.library.restore_memory(user_id, memory_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail="No deleted memory to restore") from e
    except AddFailed as e:
        raise HTTPException(status_code=502, detail="Failed to restore memory") from e
    return RestoreResponse(memory_ids=memory_ids)
