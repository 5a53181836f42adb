"""Admin takeover of a conversation and bot pause control."""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.entities.conversation import Conversation
from api.features.conversation.repository import ConversationRepository
from api.features.conversation.service import ConversationService, RealtimeEvent
from api.features.takeover.dtos import (
    TakeoverAction,
    TakeoverDTO,
    TakeoverRequest,
    TakeoverResult,
)
from api.features.takeover.entities.takeover import DEFAULT_TAKEOVER_REASON, Takeover
from api.features.takeover.repository import TakeoverRepository
from api.shared.auth import AuthenticatedUser
from api.shared.exceptions import ConflictError, NotFoundError
from infra.events.recorder import record_event

logger = logging.getLogger("chatdesk.takeover.service")


class TakeoverService:
    def __init__(self, conversation_service: ConversationService):
        self.conversation_service = conversation_service

    async def handle(
        self, request: TakeoverRequest, admin: AuthenticatedUser, *, db_session: AsyncSession
    ) -> TakeoverResult:
        conversation = await ConversationRepository(db_session).get_for_user(
            request.conversation_id, None
        )
        if conversation is None:
            raise NotFoundError("Conversation", request.conversation_id)

        handlers = {
            TakeoverAction.START: self._start,
            TakeoverAction.END: self._end,
            TakeoverAction.PAUSE_BOT: self._pause_bot,
            TakeoverAction.RESUME_BOT: self._resume_bot,
            TakeoverAction.STATUS: self._status,
        }
        result = await handlers[request.action](conversation, request, admin, db_session)

        await record_event(
            db_session,
            event_type="takeover_action",
            user_id=admin.id,
            conversation_id=conversation.id,
            payload={
                "action": request.action.value,
                "reason": request.reason,
                "notes": request.notes,
                "result": result.model_dump(mode="json", exclude_none=True),
            },
        )
        await db_session.commit()

        if request.action != TakeoverAction.STATUS:
            await self.conversation_service.publish(
                conversation.id,
                RealtimeEvent.TAKEOVER_CHANGE,
                {
                    "action": request.action.value,
                    "bot_paused": result.bot_paused,
                    "admin_id": admin.id,
                },
            )
        logger.info(
            "Takeover action %s on conversation %s by %s",
            request.action.value,
            conversation.id,
            admin.id,
        )
        return result

    @staticmethod
    async def _set_bot_paused(
        conversation: Conversation, paused: bool, db_session: AsyncSession
    ) -> None:
        conversation.bot_paused = paused
        await db_session.flush()

    async def _start(
        self,
        conversation: Conversation,
        request: TakeoverRequest,
        admin: AuthenticatedUser,
        db_session: AsyncSession,
    ) -> TakeoverResult:
        repository = TakeoverRepository(db_session)
        if await repository.get_active(conversation.id) is not None:
            raise ConflictError(
                "Takeover already active for this conversation",
                {"conversation_id": conversation.id},
            )
        try:
            takeover = await repository.create(
                Takeover(
                    conversation_id=conversation.id,
                    admin_id=admin.id,
                    active=True,
                    reason=request.reason or DEFAULT_TAKEOVER_REASON,
                    notes=request.notes,
                )
            )
        except IntegrityError as e:
            # Lost a race against another admin; the partial unique index caught it.
            await db_session.rollback()
            raise ConflictError(
                "Takeover already active for this conversation",
                {"conversation_id": conversation.id},
            ) from e
        await self._set_bot_paused(conversation, True, db_session)
        return TakeoverResult(
            action=request.action,
            conversation_id=conversation.id,
            status="started",
            bot_paused=True,
            takeover_id=takeover.id,
            admin_id=admin.id,
        )

    async def _end(
        self,
        conversation: Conversation,
        request: TakeoverRequest,
        admin: AuthenticatedUser,
        db_session: AsyncSession,
    ) -> TakeoverResult:
        repository = TakeoverRepository(db_session)
        takeover = await repository.get_active(conversation.id)
        if takeover is None:
            raise ConflictError(
                "No active takeover found for this conversation",
                {"conversation_id": conversation.id},
            )
        takeover.active = False
        takeover.ended_at = datetime.now(timezone.utc)
        await self._set_bot_paused(conversation, False, db_session)
        return TakeoverResult(
            action=request.action,
            conversation_id=conversation.id,
            status="ended",
            bot_paused=False,
            takeover_id=takeover.id,
        )

    async def _pause_bot(self, conversation, request, admin, db_session) -> TakeoverResult:
        await self._set_bot_paused(conversation, True, db_session)
        return TakeoverResult(
            action=request.action,
            conversation_id=conversation.id,
            status="bot_paused",
            bot_paused=True,
        )

    async def _resume_bot(self, conversation, request, admin, db_session) -> TakeoverResult:
        await self._set_bot_paused(conversation, False, db_session)
        return TakeoverResult(
            action=request.action,
            conversation_id=conversation.id,
            status="bot_resumed",
            bot_paused=False,
        )

    async def _status(self, conversation, request, admin, db_session) -> TakeoverResult:
        takeover: Optional[Takeover] = await TakeoverRepository(db_session).get_active(
            conversation.id
        )
        return TakeoverResult(
            action=request.action,
            conversation_id=conversation.id,
            bot_paused=conversation.bot_paused,
            has_active_takeover=takeover is not None,
            takeover=TakeoverDTO.from_entity(takeover) if takeover else None,
            conversation_status=conversation.status.value,
        )
