"""Repositories for conversations, messages and attachments."""
from __future__ import annotations

from typing import Any, List, Optional

from sqlalchemy import func, or_, select, cast, String
from sqlalchemy.orm import selectinload

from api.features.conversation.entities.conversation import (
    Attachment,
    Conversation,
    ConversationStatus,
    Message,
)
from api.shared.base import BaseRepository


class ConversationRepository(BaseRepository[Conversation]):
    model = Conversation

    async def get_for_user(
        self, conversation_id: str, user_id: Optional[str]
    ) -> Optional[Conversation]:
        """Fetch a conversation; ``user_id=None`` skips the ownership check."""
        stmt = select(Conversation).where(Conversation.id == str(conversation_id))
        if user_id is not None:
            stmt = stmt.where(Conversation.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _filters(
        *,
        user_id: Optional[str] = None,
        search: Optional[str] = None,
        status: Optional[ConversationStatus] = None,
        bot_paused: Optional[bool] = None,
    ) -> list:
        conditions = []
        if user_id is not None:
            conditions.append(Conversation.user_id == user_id)
        if status is not None:
            conditions.append(Conversation.status == status)
        if bot_paused is not None:
            conditions.append(Conversation.bot_paused == bot_paused)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    Conversation.title.ilike(pattern),
                    cast(Conversation.id, String).ilike(pattern),
                )
            )
        return conditions

    async def count_filtered(self, **filters: Any) -> int:
        stmt = select(func.count(Conversation.id)).where(*self._filters(**filters))
        return int((await self.session.execute(stmt)).scalar() or 0)

    async def list_with_message_counts(
        self,
        *,
        user_id: Optional[str] = None,
        search: Optional[str] = None,
        status: Optional[ConversationStatus] = None,
        bot_paused: Optional[bool] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> List[tuple[Conversation, int]]:
        message_count = (
            select(func.count(Message.id))
            .where(Message.conversation_id == Conversation.id)
            .correlate(Conversation)
            .scalar_subquery()
        )
        stmt = select(Conversation, message_count.label("message_count")).where(
            *self._filters(user_id=user_id, search=search, status=status, bot_paused=bot_paused)
        )
        stmt = stmt.order_by(Conversation.updated_at.desc()).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return [(row[0], int(row[1] or 0)) for row in result.all()]


class MessageRepository(BaseRepository[Message]):
    model = Message

    async def fetch_history(
        self, conversation_id: str, limit: int = 20
    ) -> List[Message]:
        """Most recent ``limit`` messages, returned oldest first."""
        stmt = (
            select(Message)
            .where(Message.conversation_id == str(conversation_id))
            .order_by(Message.created_at.desc())
            .limit(limit)
            .options(selectinload(Message.attachments))
        )
        result = await self.session.execute(stmt)
        return list(reversed(result.scalars().all()))


class AttachmentRepository(BaseRepository[Attachment]):
    model = Attachment
