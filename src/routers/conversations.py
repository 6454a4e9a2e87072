"""Conversation CRUD for the current user."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from src.chat_orchestrator.container import Services
from src.memory_core.errors import NotFound
from src.memory_core.models import ConversationRecord, MessageRecord

from .deps import current_user_id, get_services

router = APIRouter(prefix="/conversations", tags=["conversations"])


class ConversationRequest(BaseModel):
    title: str | None = Field(None, description="Conversation title")


class ConversationResponse(BaseModel):
    conversation: ConversationRecord


class ConversationDetailResponse(BaseModel):
    conversation: ConversationRecord
    messages: list[MessageRecord]


class ConversationListResponse(BaseModel):
    conversations: list[ConversationRecord]


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> ConversationListResponse:
    return ConversationListResponse(conversations=services.orchestrator.list_conversations(user_id))


@router.post("", response_model=ConversationResponse, status_code=201)
async def create_conversation(
    request: ConversationRequest,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> ConversationResponse:
    return ConversationResponse(
        conversation=services.orchestrator.create_conversation(user_id, request.title)
    )


@router.get("/{conversation_id}", response_model=ConversationDetailResponse)
async def get_conversation(
    conversation_id: str,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> ConversationDetailResponse:
    try:
        conversation, messages = services.orchestrator.get_conversation(user_id, conversation_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail="Conversation not found") from e
    return ConversationDetailResponse(conversation=conversation, messages=messages)


@router.put("/{conversation_id}", response_model=ConversationResponse)
async def rename_conversation(
    conversation_id: str,
    request: ConversationRequest,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> ConversationResponse:
    if not request.title:
        raise HTTPException(status_code=422, detail="title is required")
    try:
        conversation = services.orchestrator.rename_conversation(user_id, conversation_id, request.title)
    except NotFound as e:
        raise HTTPException(status_code=404, detail="Conversation not found") from e
    return ConversationResponse(conversation=conversation)
