from typing import Optional

from pydantic import Field

from api.shared.dtos import BaseDTO, EntityId, RequestDTO


class UploadRequest(RequestDTO):
    file_data: str = Field(min_length=1, description="Base64 payload, optionally a data URL")
    file_name: str = Field(min_length=1)
    mime_type: str
    conversation_id: Optional[EntityId] = None
    message_id: Optional[EntityId] = None


class UploadResponse(BaseDTO):
    public_url: str
    storage_path: str
    attachment_id: Optional[str] = None
    file_size: int
    mime_type: str
    kind: str
