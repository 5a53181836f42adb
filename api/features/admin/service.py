"""Read-only aggregates for the admin console."""
import logging
from typing import Optional

from sqlalchemy import Float, cast, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.admin.dtos import (
    AdminConversationList,
    AnalyticsResponse,
    DashboardResponse,
    DashboardStats,
    EventDTO,
    ProviderUsage,
)
from api.features.conversation.dtos import ConversationSummaryDTO
from api.features.conversation.entities.conversation import (
    Conversation,
    ConversationStatus,
    Message,
    MessageSender,
)
from api.features.conversation.repository import ConversationRepository
from api.features.documents.entities.document import Document
from api.features.takeover.entities.takeover import Takeover
from api.shared.entities.event import Event
from api.shared.exceptions import ValidationError
from infra.llm.base import ProviderName

logger = logging.getLogger("chatdesk.admin.service")

RECENT_EVENTS = 10
# Status filter value that selects conversations with the bot paused.
PAUSED_FILTER = "paused"


async def _count(db_session: AsyncSession, column, *conditions) -> int:
    result = await db_session.execute(select(func.count(column)).where(*conditions))
    return int(result.scalar() or 0)


class AdminService:
    async def dashboard(self, *, db_session: AsyncSession) -> DashboardResponse:
        stats = DashboardStats(
            total_conversations=await _count(db_session, Conversation.id),
            active_conversations=await _count(
                db_session, Conversation.id, Conversation.status == ConversationStatus.ACTIVE
            ),
            paused_conversations=await _count(
                db_session, Conversation.id, Conversation.bot_paused.is_(True)
            ),
            total_messages=await _count(db_session, Message.id),
            total_documents=await _count(db_session, Document.id),
            active_takeovers=await _count(db_session, Takeover.id, Takeover.active.is_(True)),
        )
        result = await db_session.execute(
            select(Event).order_by(Event.created_at.desc()).limit(RECENT_EVENTS)
        )
        events = [EventDTO.from_entity(e) for e in result.scalars().all()]
        return DashboardResponse(stats=stats, recent_events=events)

    async def conversations(
        self,
        *,
        search: Optional[str],
        status: Optional[str],
        page: int,
        limit: int,
        db_session: AsyncSession,
    ) -> AdminConversationList:
        status_filter = None
        bot_paused = None
        if status == PAUSED_FILTER:
            bot_paused = True
        elif status:
            try:
                status_filter = ConversationStatus(status)
            except ValueError as e:
                raise ValidationError(f"Unknown conversation status: {status}") from e

        repository = ConversationRepository(db_session)
        filters = {"search": search, "status": status_filter, "bot_paused": bot_paused}
        rows = await repository.list_with_message_counts(
            **filters, offset=(page - 1) * limit, limit=limit
        )
        total = await repository.count_filtered(**filters)
        conversations = [
            ConversationSummaryDTO(
                **ConversationSummaryDTO.from_entity(c).model_dump(exclude={"message_count"}),
                message_count=count,
            )
            for c, count in rows
        ]
        return AdminConversationList(conversations=conversations, total=total)

    async def analytics(self, *, db_session: AsyncSession) -> AnalyticsResponse:
        bot = Message.sender == MessageSender.BOT
        usage_rows = await db_session.execute(
            select(Message.llm_provider, func.count(Message.id))
            .where(bot, Message.llm_provider.is_not(None))
            .group_by(Message.llm_provider)
        )
        usage = {provider: int(count) for provider, count in usage_rows.all()}
        total_with_provider = sum(usage.values())

        provider_usage = [
            ProviderUsage(
                provider=name.value,
                messages=usage.get(name.value, 0),
                percentage=round(
                    usage.get(name.value, 0) * 100 / total_with_provider, 1
                )
                if total_with_provider
                else 0.0,
            )
            for name in (ProviderName.MINIMAX, ProviderName.GEMINI)
        ]

        totals = await db_session.execute(
            select(
                func.count(Message.id),
                func.avg(Message.processing_time_ms),
                # ceil(length / 4) per message, matching the chat handler's estimate.
                func.sum(func.ceil(cast(func.length(Message.content), Float) / 4)),
            ).where(bot)
        )
        count, avg_time, tokens = totals.one()
        return AnalyticsResponse(
            provider_usage=provider_usage,
            total_bot_messages=int(count or 0),
            average_processing_time_ms=round(float(avg_time or 0), 1),
            total_tokens_estimated=int(tokens or 0),
        )
