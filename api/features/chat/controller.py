"""Controller for the Chat feature."""
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from api.features.chat.dtos import ChatReplyResponse, ChatRequest
from api.features.chat.service import ChatService
from api.shared.auth import AuthenticatedUser


class ChatController:
    def __init__(self, chat_service: ChatService):
        self.chat_service = chat_service

    async def reply(
        self, request: ChatRequest, user: AuthenticatedUser, *, db_session: AsyncSession
    ) -> ChatReplyResponse:
        context = await self.chat_service.prepare(request, user, db_session=db_session)
        return await self.chat_service.reply(context, user, db_session=db_session)

    async def stream(
        self, request: ChatRequest, user: AuthenticatedUser, *, db_session: AsyncSession
    ) -> AsyncIterator[str]:
        """Prepare eagerly so validation errors surface as JSON, not inside the stream."""
        context = await self.chat_service.prepare(request, user, db_session=db_session)
        return self.chat_service.stream_reply(context, user)
