from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from api.features.documents.entities.document import Document
from api.shared.dtos import BaseDTO, PaginationInfo, RequestDTO
from core.settings import SETTINGS


class DocumentUploadRequest(RequestDTO):
    file_data: str = Field(min_length=1, description="Base64 payload, optionally a data URL")
    file_name: str = Field(min_length=1)
    title: Optional[str] = None
    mime_type: str
    tags: List[str] = Field(default_factory=list)
    is_public: bool = True
    metadata: Dict[str, Any] = Field(default_factory=dict)
    chunk_size: int = Field(default=SETTINGS.RAG.CHUNK_SIZE, ge=100, le=8000)
    chunk_overlap: int = Field(default=SETTINGS.RAG.CHUNK_OVERLAP, ge=0, le=2000)


class DocumentUploadResponse(BaseDTO):
    title: str
    filename: str
    chunks_created: int
    document_ids: List[str]
    storage_path: str
    processing_time: int
    text_length: int
    is_public: bool


class DocumentUpdateRequest(RequestDTO):
    title: Optional[str] = Field(default=None, min_length=1)
    tags: Optional[List[str]] = None
    is_public: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None

    def changes(self) -> Dict[str, Any]:
        """Fields that were sent, keyed by entity attribute."""
        data = self.model_dump(exclude_unset=True, exclude_none=True)
        if "metadata" in data:
            data["metadata_"] = data.pop("metadata")
        return data


class DocumentDTO(BaseDTO):
    id: str
    title: str
    content: str
    filename: Optional[str] = None
    mime_type: str
    file_size: Optional[int] = None
    storage_path: Optional[str] = None
    chunk_index: int
    total_chunks: int
    tags: List[str] = Field(default_factory=list)
    is_public: bool
    uploaded_by: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, entity: Document) -> "DocumentDTO":
        return cls(
            id=str(entity.id),
            title=entity.title,
            content=entity.content,
            filename=entity.filename,
            mime_type=entity.mime_type,
            file_size=entity.file_size,
            storage_path=entity.storage_path,
            chunk_index=entity.chunk_index,
            total_chunks=entity.total_chunks,
            tags=list(entity.tags or []),
            is_public=entity.is_public,
            uploaded_by=entity.uploaded_by,
            metadata=entity.metadata_ or {},
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )


class DocumentDetailDTO(DocumentDTO):
    all_chunks: Optional[List[DocumentDTO]] = None


class DocumentListResponse(BaseDTO):
    documents: List[DocumentDTO]
    pagination: PaginationInfo


class DocumentStatsResponse(BaseDTO):
    total_documents: int
    public_documents: int
    private_documents: int
    mime_type_distribution: Dict[str, int]
    uploader_distribution: Dict[str, int]


class DocumentDeleteResponse(BaseDTO):
    deleted: bool
    document_id: str
    file_removed: bool
