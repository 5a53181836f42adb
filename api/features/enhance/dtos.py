from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field

from api.shared.dtos import BaseDTO, EntityId, RequestDTO


class EnhanceStyle(str, Enum):
    FORMAL = "formal"
    CONCISO = "conciso"
    AMABLE = "amable"
    VENDEDOR = "vendedor"
    NEUTRO = "neutro"


class EnhanceRequest(RequestDTO):
    original_text: str = Field(min_length=1)
    style: EnhanceStyle = EnhanceStyle.NEUTRO
    intensity: int = Field(default=50, ge=0, le=100)
    conversation_id: Optional[EntityId] = None
    original_message_id: Optional[EntityId] = None
    provider: str = "auto"


class EnhanceResponse(BaseDTO):
    draft_id: str
    enhanced_text: str
    original_text: str
    diff_data: Dict[str, Any]
    metrics: Dict[str, Any]
    provider: str
    processing_time: int
