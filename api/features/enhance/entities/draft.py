from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from api.shared.entities.base import BaseEntity, str_enum


class DraftStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AdminDraft(BaseEntity):
    """A rewritten message proposed by an admin, pending review."""

    __tablename__ = "admin_drafts"

    conversation_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False))
    original_message_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False))
    original_text: Mapped[str] = mapped_column(Text, nullable=False)
    enhanced_text: Mapped[str] = mapped_column(Text, nullable=False)
    style: Mapped[str] = mapped_column(String(32), nullable=False)
    intensity: Mapped[int] = mapped_column(Integer, nullable=False)
    diff_data: Mapped[Dict[str, Any]] = mapped_column(JSONB, default=dict)
    metrics: Mapped[Dict[str, Any]] = mapped_column(JSONB, default=dict)
    status: Mapped[DraftStatus] = mapped_column(
        str_enum(DraftStatus, 16), default=DraftStatus.PENDING, nullable=False
    )
    created_by: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
