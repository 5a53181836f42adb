"""Conversation, message and attachment entities."""
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from api.shared.entities.base import BaseEntity, str_enum

DEFAULT_CONVERSATION_TITLE = "Nueva Conversación"


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    ARCHIVED = "archived"


class MessageSender(str, Enum):
    USER = "user"
    BOT = "bot"
    ADMIN = "admin"
    SYSTEM = "system"


class MessageType(str, Enum):
    TEXT = "text"
    FILE = "file"
    AUDIO = "audio"
    IMAGE = "image"
    VISION_ANALYSIS = "vision_analysis"


class MessageStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    ERROR = "error"


class AttachmentKind(str, Enum):
    IMAGE = "image"
    AUDIO = "audio"
    FILE = "file"


class Conversation(BaseEntity):
    title: Mapped[str] = mapped_column(
        String(500), default=DEFAULT_CONVERSATION_TITLE, nullable=False
    )
    status: Mapped[ConversationStatus] = mapped_column(
        str_enum(ConversationStatus, 16),
        default=ConversationStatus.ACTIVE,
        nullable=False,
    )
    bot_paused: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False, index=True)

    messages: Mapped[List["Message"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.created_at",
        lazy="raise",
    )


class Message(BaseEntity):
    conversation_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender: Mapped[MessageSender] = mapped_column(
        str_enum(MessageSender, 16), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[MessageType] = mapped_column(
        str_enum(MessageType, 32), default=MessageType.TEXT, nullable=False
    )
    status: Mapped[MessageStatus] = mapped_column(
        str_enum(MessageStatus, 16), default=MessageStatus.SENT, nullable=False
    )
    llm_provider: Mapped[Optional[str]] = mapped_column(String(32))
    processing_time_ms: Mapped[Optional[int]] = mapped_column(Integer)
    metadata_: Mapped[Dict[str, Any]] = mapped_column(
        "metadata", JSONB, default=dict
    )

    conversation: Mapped[Conversation] = relationship(
        back_populates="messages", lazy="raise"
    )
    attachments: Mapped[List["Attachment"]] = relationship(
        back_populates="message", cascade="all, delete-orphan", lazy="raise"
    )


class Attachment(BaseEntity):
    message_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    kind: Mapped[AttachmentKind] = mapped_column(
        str_enum(AttachmentKind, 16), nullable=False
    )
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    url: Mapped[Optional[str]] = mapped_column(Text)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    message: Mapped[Message] = relationship(back_populates="attachments", lazy="raise")
