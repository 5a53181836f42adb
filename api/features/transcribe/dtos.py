from typing import Optional

from pydantic import Field

from api.shared.dtos import BaseDTO, EntityId, RequestDTO


class TranscribeRequest(RequestDTO):
    audio_data: str = Field(min_length=1, description="Base64 audio, optionally a data URL")
    mime_type: str = Field(default="audio/webm")
    provider: str = Field(default="auto")
    conversation_id: Optional[EntityId] = None


class TranscribeResponse(BaseDTO):
    transcription: str
    provider: str
    processing_time: int
