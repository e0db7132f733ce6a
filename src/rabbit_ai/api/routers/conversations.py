"""Conversation and message endpoints. All require a bearer token."""

from __future__ import annotations

from fastapi import APIRouter, Query
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, Field

from rabbit_ai.api.deps import ContainerDep, CurrentUserId
from rabbit_ai.api.responses import ok

router = APIRouter(prefix="/conversations", tags=["conversations"])


class CreateConversationRequest(BaseModel):
    title: str = ""


class SendMessageRequest(BaseModel):
    content: str = Field(min_length=1)
    model: str | None = None


@router.post("")
async def create_conversation(
    body: CreateConversationRequest, user_id: CurrentUserId, container: ContainerDep
) -> ORJSONResponse:
    result = await container.conversation_service.create_conversation(user_id, body.title)
    return ok(result.conversation.model_dump(mode="json"), "Conversation created", 201)


@router.get("")
async def list_conversations(
    user_id: CurrentUserId,
    container: ContainerDep,
    limit: int = Query(default=0, ge=0),
    offset: int = Query(default=0, ge=0),
) -> ORJSONResponse:
    page = await container.conversation_service.get_conversations(user_id, limit, offset)
    return ok(page.to_dict())


@router.get("/{conversation_id}")
async def get_conversation(
    conversation_id: int, user_id: CurrentUserId, container: ContainerDep
) -> ORJSONResponse:
    result = await container.conversation_service.get_conversation(conversation_id, user_id)
    return ok(result.conversation.model_dump(mode="json"))


@router.get("/{conversation_id}/messages")
async def list_messages(
    conversation_id: int,
    user_id: CurrentUserId,
    container: ContainerDep,
    limit: int = Query(default=0, ge=0),
    offset: int = Query(default=0, ge=0),
) -> ORJSONResponse:
    page = await container.conversation_service.get_conversation_messages(
        conversation_id, user_id, limit, offset
    )
    return ok(page.to_dict())


@router.post("/{conversation_id}/messages")
async def send_message(
    conversation_id: int,
    body: SendMessageRequest,
    user_id: CurrentUserId,
    container: ContainerDep,
) -> ORJSONResponse:
    result = await container.conversation_service.send_message(
        conversation_id, user_id, body.content, body.model
    )
    return ok(result.to_dict())


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: int, user_id: CurrentUserId, container: ContainerDep
) -> ORJSONResponse:
    await container.conversation_service.delete_conversation(conversation_id, user_id)
    return ok(message="Conversation deleted")
