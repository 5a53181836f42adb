"""DTOs for the Chat feature."""
from typing import List, Optional

from pydantic import AliasChoices, Field

from api.shared.dtos import BaseDTO, EntityId, RequestDTO


class AttachmentInput(RequestDTO):
    """An already uploaded file referenced by a chat message."""

    kind: str = Field(default="file")
    storage_path: str = Field(
        validation_alias=AliasChoices("storage_path", "storagePath")
    )
    url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("url", "public_url", "publicUrl")
    )
    mime_type: str = Field(
        default="application/octet-stream",
        validation_alias=AliasChoices("mime_type", "mimeType"),
    )
    size_bytes: int = Field(
        default=0,
        validation_alias=AliasChoices("size_bytes", "sizeBytes", "file_size", "fileSize"),
    )


class ChatRequest(RequestDTO):
    message: str = Field(min_length=1, description="User message")
    conversation_id: EntityId = Field(description="Conversation identifier")
    llm_provider: str = Field(default="auto", description="minimax, gemini or auto")
    use_rag: bool = Field(default=False, description="Splice matching documents into the prompt")
    attachments: List[AttachmentInput] = Field(default_factory=list)
    stream: bool = Field(default=True, description="Stream the reply as server-sent events")


class ChatReplyResponse(BaseDTO):
    response: str
    provider: str
    processing_time: int = Field(description="Milliseconds spent generating the reply")
    tokens_estimated: int
    message_id: str
    used_rag: bool = False
