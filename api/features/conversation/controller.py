"""Controller for the Conversation feature."""
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.dtos import (
    ConversationDTO,
    ConversationListResponse,
    MessageDTO,
    MessagesResponse,
    TypingResponse,
)
from api.features.conversation.service import ConversationService
from api.shared.auth import AuthenticatedUser


class ConversationController:
    """Controller handling conversation CRUD and message operations."""

    def __init__(self, conversation_service: ConversationService):
        self.conversation_service = conversation_service

    async def create_conversation(
        self, *, user: AuthenticatedUser, title: str | None, db_session: AsyncSession
    ) -> ConversationDTO:
        conversation = await self.conversation_service.create_conversation(
            user_id=user.id, title=title, db_session=db_session
        )
        return ConversationDTO.from_entity(conversation)

    async def list_conversations(
        self, *, user: AuthenticatedUser, limit: int, db_session: AsyncSession
    ) -> ConversationListResponse:
        items, total = await self.conversation_service.list_conversations(
            user_id=user.id, limit=limit, db_session=db_session
        )
        return ConversationListResponse(
            items=[ConversationDTO.from_entity(c) for c in items], total=total
        )

    async def get_conversation(
        self, conversation_id: str, *, user: AuthenticatedUser, db_session: AsyncSession
    ) -> ConversationDTO:
        conversation = await self.conversation_service.get_conversation(
            conversation_id, user, db_session=db_session
        )
        return ConversationDTO.from_entity(conversation)

    async def get_messages(
        self,
        conversation_id: str,
        *,
        user: AuthenticatedUser,
        limit: int,
        db_session: AsyncSession,
    ) -> MessagesResponse:
        conversation = await self.conversation_service.get_conversation(
            conversation_id, user, db_session=db_session
        )
        messages = await self.conversation_service.fetch_history(
            conversation.id, limit=limit, db_session=db_session
        )
        items = [MessageDTO.from_entity(m) for m in messages]
        return MessagesResponse(items=items, total=len(items))

    async def post_admin_message(
        self,
        conversation_id: str,
        *,
        admin: AuthenticatedUser,
        content: str,
        db_session: AsyncSession,
    ) -> MessageDTO:
        message = await self.conversation_service.post_admin_message(
            conversation_id, admin, content, db_session=db_session
        )
        return MessageDTO.from_entity(message, attachments=[])

    async def notify_typing(
        self,
        conversation_id: str,
        *,
        user: AuthenticatedUser,
        typing: bool,
        db_session: AsyncSession,
    ) -> TypingResponse:
        sender = await self.conversation_service.notify_typing(
            conversation_id, user, typing, db_session=db_session
        )
        return TypingResponse(conversation_id=conversation_id, typing=typing, sender=sender)
