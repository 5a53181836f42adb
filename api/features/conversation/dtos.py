"""DTOs for the Conversation feature."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from api.features.conversation.entities.conversation import (
    Attachment,
    Conversation,
    Message,
)
from api.shared.dtos import BaseDTO, RequestDTO


class CreateConversationRequest(RequestDTO):
    """Request to create a conversation."""

    title: Optional[str] = Field(default=None, description="Conversation title")


class AdminMessageRequest(RequestDTO):
    """Message typed by an admin during a takeover."""

    content: str = Field(min_length=1, description="Message content")


class ConversationDTO(BaseDTO):
    id: str
    title: str
    status: str
    bot_paused: bool
    user_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, entity: Conversation) -> "ConversationDTO":
        return cls(
            id=str(entity.id),
            title=entity.title,
            status=getattr(entity.status, "value", entity.status),
            bot_paused=entity.bot_paused,
            user_id=str(entity.user_id),
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )


class ConversationSummaryDTO(ConversationDTO):
    message_count: int = 0


class AttachmentDTO(BaseDTO):
    id: str
    kind: str
    storage_path: str
    url: Optional[str] = None
    mime_type: str
    size_bytes: int

    @classmethod
    def from_entity(cls, entity: Attachment) -> "AttachmentDTO":
        return cls(
            id=str(entity.id),
            kind=getattr(entity.kind, "value", entity.kind),
            storage_path=entity.storage_path,
            url=entity.url,
            mime_type=entity.mime_type,
            size_bytes=entity.size_bytes,
        )


class MessageDTO(BaseDTO):
    """Conversation message DTO."""

    id: str
    conversation_id: str
    sender: str
    content: str
    type: str
    status: str
    llm_provider: Optional[str] = None
    processing_time_ms: Optional[int] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    attachments: List[AttachmentDTO] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    @classmethod
    def from_entity(
        cls, entity: Message, attachments: Optional[List[Attachment]] = None
    ) -> "MessageDTO":
        return cls(
            id=str(entity.id),
            conversation_id=str(entity.conversation_id),
            sender=getattr(entity.sender, "value", entity.sender),
            content=entity.content,
            type=getattr(entity.type, "value", entity.type),
            status=getattr(entity.status, "value", entity.status),
            llm_provider=entity.llm_provider,
            processing_time_ms=entity.processing_time_ms,
            metadata=entity.metadata_ or {},
            attachments=[
                AttachmentDTO.from_entity(a)
                for a in (attachments if attachments is not None else entity.attachments)
            ],
            created_at=entity.created_at,
        )


class ConversationListResponse(BaseDTO):
    items: List[ConversationDTO]
    total: int


class MessagesResponse(BaseDTO):
    """Messages list response."""

    items: List[MessageDTO] = Field(description="Messages in chronological order")
    total: int = Field(description="Total messages returned")


class TypingRequest(RequestDTO):
    typing: bool = True


class TypingResponse(BaseDTO):
    conversation_id: str
    typing: bool
    sender: str
