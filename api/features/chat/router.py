"""Router for the Chat feature."""
import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.chat.controller import ChatController
from api.features.chat.dtos import ChatReplyResponse, ChatRequest
from api.shared.auth import AuthenticatedUser, get_current_user
from api.shared.db import get_db_session
from api.shared.exceptions import handler_errors
from api.shared.rate_limit import enforce_rate_limit
from api.shared.response import ResponseModel
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()
logger = logging.getLogger("chatdesk.chat.router")


@router.post(
    "",
    response_model=ResponseModel[ChatReplyResponse],
    dependencies=[Depends(enforce_rate_limit("chat"))],
)
@inject
async def chat(
    request: ChatRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    controller: ChatController = Depends(
        Provide[DependencyContainer.controllers.chat_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Generate a bot reply, streamed as server-sent events unless ``stream`` is false."""
    with handler_errors("CHAT_ERROR", logger):
        if request.stream:
            events = await controller.stream(request, user, db_session=db_session)
            return StreamingResponse(
                events,
                media_type="text/event-stream",
                headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
            )
        result = await controller.reply(request, user, db_session=db_session)
    return ResponseModel.success(data=result)
