"""Service layer for conversations, messages and the realtime channel."""
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.entities.conversation import (
    DEFAULT_CONVERSATION_TITLE,
    Conversation,
    Message,
    MessageSender,
    MessageStatus,
    MessageType,
)
from api.features.conversation.repository import (
    ConversationRepository,
    MessageRepository,
)
from api.shared.auth import AuthenticatedUser
from api.shared.exceptions import NotFoundError
from infra.events.recorder import record_event
from infra.resources import RedisResource

logger = logging.getLogger("chatdesk.conversation.service")


class RealtimeEvent:
    TYPING = "typing"
    TAKEOVER_CHANGE = "takeover_change"
    ADMIN_MESSAGE = "admin_message"


class ConversationService:
    def __init__(self, realtime: RedisResource):
        self.realtime = realtime

    async def create_conversation(
        self, *, user_id: str, title: Optional[str], db_session: AsyncSession
    ) -> Conversation:
        repository = ConversationRepository(db_session)
        conversation = await repository.create(
            Conversation(user_id=user_id, title=title or DEFAULT_CONVERSATION_TITLE)
        )
        await record_event(
            db_session,
            event_type="conversation_created",
            user_id=user_id,
            conversation_id=conversation.id,
        )
        await db_session.commit()
        logger.info("Conversation created: %s", conversation.id)
        return conversation

    async def get_conversation(
        self, conversation_id: str, user: AuthenticatedUser, *, db_session: AsyncSession
    ) -> Conversation:
        """Admins may open any conversation; users only their own."""
        repository = ConversationRepository(db_session)
        conversation = await repository.get_for_user(
            conversation_id, None if user.is_admin else user.id
        )
        if conversation is None:
            raise NotFoundError("Conversation", str(conversation_id))
        return conversation

    async def list_conversations(
        self, *, user_id: str, limit: int, db_session: AsyncSession
    ) -> tuple[List[Conversation], int]:
        repository = ConversationRepository(db_session)
        return await repository.list(
            offset=0, limit=limit, order_by="-updated_at", user_id=user_id
        )

    async def fetch_history(
        self, conversation_id: str, *, limit: int, db_session: AsyncSession
    ) -> List[Message]:
        return await MessageRepository(db_session).fetch_history(conversation_id, limit)

    async def save_message(
        self,
        *,
        conversation_id: str,
        sender: MessageSender,
        content: str,
        db_session: AsyncSession,
        message_type: MessageType = MessageType.TEXT,
        status: MessageStatus = MessageStatus.SENT,
        llm_provider: Optional[str] = None,
        processing_time_ms: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Message:
        repository = MessageRepository(db_session)
        return await repository.create(
            Message(
                conversation_id=str(conversation_id),
                sender=sender,
                content=content,
                type=message_type,
                status=status,
                llm_provider=llm_provider,
                processing_time_ms=processing_time_ms,
                metadata_=metadata or {},
            )
        )

    async def post_admin_message(
        self,
        conversation_id: str,
        admin: AuthenticatedUser,
        content: str,
        *,
        db_session: AsyncSession,
    ) -> Message:
        conversation = await self.get_conversation(
            conversation_id, admin, db_session=db_session
        )
        message = await self.save_message(
            conversation_id=conversation.id,
            sender=MessageSender.ADMIN,
            content=content,
            metadata={"admin_id": admin.id},
            db_session=db_session,
        )
        await record_event(
            db_session,
            event_type="admin_message",
            user_id=admin.id,
            conversation_id=conversation.id,
            payload={"message_id": message.id},
        )
        await db_session.commit()
        await self.publish(
            conversation.id,
            RealtimeEvent.ADMIN_MESSAGE,
            {"message_id": message.id, "content": content, "admin_id": admin.id},
        )
        return message

    async def publish(
        self, conversation_id: str, event: str, payload: Dict[str, Any]
    ) -> None:
        """Best-effort broadcast; state is already committed when this runs."""
        channel = RedisResource.conversation_channel(conversation_id)
        try:
            await self.realtime.publish(channel, event, payload)
        except RedisError as e:
            logger.warning("Realtime publish failed on %s: %s", channel, e)

    async def notify_typing(
        self,
        conversation_id: str,
        user: AuthenticatedUser,
        typing: bool,
        *,
        db_session: AsyncSession,
    ) -> str:
        """Broadcast a typing indicator; returns who is typing (`user` or `admin`)."""
        conversation = await self.get_conversation(
            conversation_id, user, db_session=db_session
        )
        sender = MessageSender.ADMIN.value if user.is_admin else MessageSender.USER.value
        await self.publish(
            conversation.id,
            RealtimeEvent.TYPING,
            {"typing": typing, "sender": sender, "user_id": user.id},
        )
        return sender

    def subscribe(self, conversation_id: str) -> AsyncIterator[Dict[str, Any]]:
        return self.realtime.subscribe(RedisResource.conversation_channel(conversation_id))
