from datetime import datetime
from typing import Any, Dict, List, Optional

from api.features.conversation.dtos import ConversationSummaryDTO
from api.shared.dtos import BaseDTO
from api.shared.entities.event import Event


class EventDTO(BaseDTO):
    id: str
    event_type: str
    user_id: Optional[str] = None
    conversation_id: Optional[str] = None
    payload: Dict[str, Any]
    created_at: datetime

    @classmethod
    def from_entity(cls, entity: Event) -> "EventDTO":
        return cls(
            id=str(entity.id),
            event_type=entity.event_type,
            user_id=entity.user_id,
            conversation_id=entity.conversation_id,
            payload=entity.payload or {},
            created_at=entity.created_at,
        )


class DashboardStats(BaseDTO):
    total_conversations: int
    active_conversations: int
    paused_conversations: int
    total_messages: int
    total_documents: int
    active_takeovers: int


class DashboardResponse(BaseDTO):
    stats: DashboardStats
    recent_events: List[EventDTO]


class AdminConversationList(BaseDTO):
    conversations: List[ConversationSummaryDTO]
    total: int


class ProviderUsage(BaseDTO):
    provider: str
    messages: int
    percentage: float


class AnalyticsResponse(BaseDTO):
    provider_usage: List[ProviderUsage]
    total_bot_messages: int
    average_processing_time_ms: float
    total_tokens_estimated: int
