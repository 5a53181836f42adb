from datetime import datetime
from typing import Optional

from pydantic import Field

from api.shared.dtos import BaseDTO, EntityId, RequestDTO

DEFAULT_VISION_PROMPT = (
    "Analiza esta imagen en detalle. Describe lo que ves y proporciona "
    "información relevante."
)


class VisionRequest(RequestDTO):
    image_url: Optional[str] = None
    image_base64: Optional[str] = None
    prompt: Optional[str] = None
    model_provider: str = Field(default="gemini")
    conversation_id: Optional[EntityId] = None

    @property
    def effective_prompt(self) -> str:
        return self.prompt or DEFAULT_VISION_PROMPT


class VisionResponse(BaseDTO):
    analysis: str
    model_used: str
    timestamp: datetime
    message_id: Optional[str] = None
