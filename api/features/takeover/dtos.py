from datetime import datetime
from enum import Enum
from typing import Optional

from api.features.takeover.entities.takeover import Takeover
from api.shared.dtos import BaseDTO, EntityId, RequestDTO


class TakeoverAction(str, Enum):
    START = "start"
    END = "end"
    PAUSE_BOT = "pause_bot"
    RESUME_BOT = "resume_bot"
    STATUS = "status"


class TakeoverRequest(RequestDTO):
    conversation_id: EntityId
    action: TakeoverAction
    reason: Optional[str] = None
    notes: Optional[str] = None


class TakeoverDTO(BaseDTO):
    id: str
    conversation_id: str
    admin_id: str
    active: bool
    reason: str
    notes: Optional[str] = None
    started_at: datetime
    ended_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, entity: Takeover) -> "TakeoverDTO":
        return cls.model_validate(entity)


class TakeoverResult(BaseDTO):
    """Response of every action; fields not relevant to an action stay null."""

    action: TakeoverAction
    conversation_id: str
    status: Optional[str] = None
    bot_paused: bool
    takeover_id: Optional[str] = None
    admin_id: Optional[str] = None
    has_active_takeover: Optional[bool] = None
    takeover: Optional[TakeoverDTO] = None
    conversation_status: Optional[str] = None
