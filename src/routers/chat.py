"""Chat router: send a message, inspect its memory activity and citations."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from src.chat_orchestrator.container import Services
from src.memory_core.errors import ConversationReadOnly, NotFound
from src.memory_core.models import MemoryActivity, MemoryReference, MessageRecord

from .deps import current_user_id, get_services

router = APIRouter(prefix="/messages", tags=["messages"])


class SendMessageRequest(BaseModel):
    """Request body for POST /messages."""

    conversation_id: str = Field(..., description="Conversation owned by the current user")
    content: str = Field(..., min_length=1, description="User message")


class SendMessageResponse(BaseModel):
    user_message: MessageRecord
    assistant_message: MessageRecord
    cited_memories: list[str] = Field(default_factory=list)


class ActivityResponse(BaseModel):
    activity: MemoryActivity


class ReferencesResponse(BaseModel):
    memories: list[MemoryReference]


class RememberResponse(BaseModel):
    memory_ids: list[str]


@router.post("", response_model=SendMessageResponse, status_code=201)
async def send_message(
    request: SendMessageRequest,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> SendMessageResponse:
    """Run one chat turn. Memory extraction and reconciliation continue in the background."""
    try:
        result = await services.orchestrator.handle_message(
            user_id, request.conversation_id, request.content
        )
    except NotFound as e:
        raise HTTPException(status_code=404, detail="Conversation not found") from e
    except ConversationReadOnly as e:
        raise HTTPException(status_code=409, detail="Conversation is read-only") from e
    return SendMessageResponse(
        user_message=result.user_message,
        assistant_message=result.assistant_message,
        cited_memories=result.cited_memory_ids,
    )


@router.get("/{message_id}/activity", response_model=ActivityResponse)
async def message_activity(
    message_id: str,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> ActivityResponse:
    return ActivityResponse(activity=services.orchestrator.message_activity(user_id, message_id))


@router.get("/{message_id}/memories", response_model=ReferencesResponse)
async def message_memories(
    message_id: str,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> ReferencesResponse:
    try:
        references = services.orchestrator.message_references(user_id, message_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail="Message not found") from e
    return ReferencesResponse(memories=references)


@router.post("/{message_id}/remember", response_model=RememberResponse)
async def retry_remember(
    message_id: str,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> RememberResponse:
    """Retry adding a user message to long-term memory after a failed background add."""
    try:
        memory_ids = await services.orchestrator.retry_remember(user_id, message_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail="Message not found") from e
    return RememberResponse(memory_ids=memory_ids)
