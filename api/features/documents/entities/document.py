"""Document chunk entity: one row per embedded chunk of an uploaded file."""
from typing import Any, Dict, List, Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from api.shared.entities.base import BaseEntity
from core.settings import SETTINGS

SUPPORTED_DOCUMENT_MIME_TYPES = ("application/pdf", "text/plain", "text/markdown")


class Document(BaseEntity):
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    filename: Mapped[Optional[str]] = mapped_column(String(255))
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_size: Mapped[Optional[int]] = mapped_column(Integer)
    storage_path: Mapped[Optional[str]] = mapped_column(String(500))
    chunk_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_chunks: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    embedding: Mapped[Optional[List[float]]] = mapped_column(
        Vector(SETTINGS.RAG.EMBEDDING_DIMENSION), nullable=True, deferred=True
    )
    tags: Mapped[List[str]] = mapped_column(ARRAY(String), default=list)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    uploaded_by: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), index=True
    )
    metadata_: Mapped[Dict[str, Any]] = mapped_column(
        "metadata", JSONB, default=dict
    )

    @property
    def base_title(self) -> str:
        """Title without the ``(Parte i/n)`` suffix added to multi-chunk uploads."""
        marker = self.title.rfind(" (Parte ")
        return self.title[:marker] if marker != -1 else self.title

    def readable_by(self, user_id: str, is_admin: bool = False) -> bool:
        """Admins read everything; others read public chunks and their own uploads."""
        return is_admin or self.is_public or self.uploaded_by == user_id
