"""Append-only audit log."""
from typing import Any, Dict, Optional

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from api.shared.entities.base import BaseEntity


class Event(BaseEntity):
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False))
    conversation_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False))
    payload: Mapped[Dict[str, Any]] = mapped_column(JSONB, default=dict)
