"""Router for the Conversation feature."""
import json
import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.controller import ConversationController
from api.features.conversation.dtos import (
    AdminMessageRequest,
    ConversationDTO,
    ConversationListResponse,
    CreateConversationRequest,
    MessageDTO,
    MessagesResponse,
    TypingRequest,
    TypingResponse,
)
from api.features.conversation.service import ConversationService
from api.shared.auth import AuthenticatedUser, get_current_user, require_admin
from api.shared.db import get_db_session
from api.shared.exceptions import handler_errors
from api.shared.response import ResponseModel
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()
logger = logging.getLogger("chatdesk.conversation.router")

ERROR_CODE = "CONVERSATION_ERROR"


@router.post("/", response_model=ResponseModel[ConversationDTO])
@inject
async def create_conversation(
    request: CreateConversationRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    with handler_errors(ERROR_CODE, logger):
        conversation = await controller.create_conversation(
            user=user, title=request.title, db_session=db_session
        )
    return ResponseModel.success(data=conversation)


@router.get("/", response_model=ResponseModel[ConversationListResponse])
@inject
async def list_conversations(
    limit: int = Query(50, ge=1, le=200),
    user: AuthenticatedUser = Depends(get_current_user),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    with handler_errors(ERROR_CODE, logger):
        result = await controller.list_conversations(
            user=user, limit=limit, db_session=db_session
        )
    return ResponseModel.success(data=result)


@router.get("/{conversation_id}", response_model=ResponseModel[ConversationDTO])
@inject
async def get_conversation(
    conversation_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    with handler_errors(ERROR_CODE, logger):
        conversation = await controller.get_conversation(
            conversation_id, user=user, db_session=db_session
        )
    return ResponseModel.success(data=conversation)


@router.get(
    "/{conversation_id}/messages", response_model=ResponseModel[MessagesResponse]
)
@inject
async def get_messages(
    conversation_id: str,
    limit: int = Query(50, ge=1, le=500),
    user: AuthenticatedUser = Depends(get_current_user),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    with handler_errors(ERROR_CODE, logger):
        messages = await controller.get_messages(
            conversation_id, user=user, limit=limit, db_session=db_session
        )
    return ResponseModel.success(data=messages)


@router.post("/{conversation_id}/messages", response_model=ResponseModel[MessageDTO])
@inject
async def post_admin_message(
    conversation_id: str,
    request: AdminMessageRequest,
    admin: AuthenticatedUser = Depends(require_admin),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    with handler_errors(ERROR_CODE, logger):
        message = await controller.post_admin_message(
            conversation_id, admin=admin, content=request.content, db_session=db_session
        )
    return ResponseModel.success(data=message)


@router.post("/{conversation_id}/typing", response_model=ResponseModel[TypingResponse])
@inject
async def notify_typing(
    conversation_id: str,
    request: TypingRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    with handler_errors(ERROR_CODE, logger):
        result = await controller.notify_typing(
            conversation_id, user=user, typing=request.typing, db_session=db_session
        )
    return ResponseModel.success(data=result)


@router.get("/{conversation_id}/events")
@inject
async def stream_events(
    conversation_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ConversationService = Depends(
        Provide[DependencyContainer.services.conversation_service]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Relay the conversation's realtime channel as server-sent events."""
    with handler_errors(ERROR_CODE, logger):
        conversation = await service.get_conversation(
            conversation_id, user, db_session=db_session
        )

    async def event_stream():
        async for event in service.subscribe(conversation.id):
            yield f"data: {json.dumps(event, default=str)}\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
