"""Knowledge-base documents: chunked, embedded and searchable."""
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from minio.error import S3Error
from openai import OpenAIError
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.documents.dtos import DocumentUploadRequest, DocumentUploadResponse
from api.features.documents.entities.document import (
    SUPPORTED_DOCUMENT_MIME_TYPES,
    Document,
)
from api.features.documents.exceptions import DocumentNotFoundError, EmptyDocumentError
from api.features.documents.repositories.document_repository import DocumentRepository
from api.shared.auth import AuthenticatedUser
from api.shared.exceptions import ExternalServiceError, StorageError, ValidationError
from api.shared.moderation import validate_file_upload
from api.shared.utils import (
    decode_base64_payload,
    elapsed_ms,
    estimate_base64_size,
    generate_storage_path,
)
from etl.chunk import TextChunk, split_text_into_chunks
from etl.extract import UnsupportedDocumentType, extract_text
from infra.events.recorder import record_event
from infra.llm.embeddings import EmbeddingClient
from infra.resources import MinIOResource

logger = logging.getLogger("chatdesk.documents.service")


def chunk_title(title: str, index: int, total: int) -> str:
    return f"{title} (Parte {index + 1}/{total})" if total > 1 else title


class DocumentService:
    """Service for document ingestion and management."""

    def __init__(self, storage_client: MinIOResource, embeddings: EmbeddingClient):
        self.storage = storage_client
        self.embeddings = embeddings

    def _require_embeddings(self) -> None:
        if not self.embeddings.configured:
            raise ExternalServiceError("embeddings", "Embedding provider is not configured")

    async def _embed_chunks(
        self, chunks: Sequence[TextChunk]
    ) -> List[Tuple[TextChunk, List[float]]]:
        """Embed chunk by chunk; a failing chunk is skipped."""
        embedded = []
        for chunk in chunks:
            try:
                vector = await self.embeddings.embed_query(chunk.text)
            except OpenAIError as e:
                logger.warning("Skipping chunk %d: embedding failed: %s", chunk.index, e)
                continue
            embedded.append((chunk, vector))
        return embedded

    async def upload_document(
        self,
        request: DocumentUploadRequest,
        user: AuthenticatedUser,
        *,
        db_session: AsyncSession,
    ) -> DocumentUploadResponse:
        start = time.perf_counter()
        allowed = frozenset(SUPPORTED_DOCUMENT_MIME_TYPES)
        validate_file_upload(
            request.file_name,
            request.mime_type,
            estimate_base64_size(request.file_data),
            allowed_mime_types=allowed,
        )
        content = decode_base64_payload(request.file_data)
        validate_file_upload(
            request.file_name, request.mime_type, len(content), allowed_mime_types=allowed
        )
        self._require_embeddings()

        try:
            text = extract_text(content, request.mime_type)
        except UnsupportedDocumentType as e:
            raise ValidationError(str(e), error_code="INVALID_FILE_TYPE") from e
        if not text.strip():
            raise EmptyDocumentError(request.file_name)

        try:
            chunks = split_text_into_chunks(
                text, chunk_size=request.chunk_size, chunk_overlap=request.chunk_overlap
            )
        except ValueError as e:
            raise ValidationError(str(e)) from e

        embedded = await self._embed_chunks(chunks)
        if not embedded:
            raise ExternalServiceError("embeddings", "No chunk could be embedded")

        storage_path = generate_storage_path(
            user.id, request.file_name, request.mime_type, prefix="documents"
        )
        try:
            await self.storage.put_object_bytes(storage_path, content, request.mime_type)
        except S3Error as e:
            raise StorageError(f"Failed to store document: {e}") from e

        title = request.title or Path(request.file_name).stem
        total = len(chunks)
        uploaded_at = datetime.now(timezone.utc).isoformat()
        repository = DocumentRepository(db_session)
        document_ids = []
        for chunk, vector in embedded:
            document = await repository.create(
                Document(
                    title=chunk_title(title, chunk.index, total),
                    content=chunk.text,
                    filename=request.file_name,
                    mime_type=request.mime_type,
                    file_size=len(content),
                    storage_path=storage_path,
                    chunk_index=chunk.index,
                    total_chunks=total,
                    tags=request.tags,
                    is_public=request.is_public,
                    uploaded_by=user.id,
                    metadata_={
                        **request.metadata,
                        "original_filename": request.file_name,
                        "chunk_info": {
                            "index": chunk.index,
                            "total": total,
                            "size": len(chunk.text),
                        },
                        "processing_info": {
                            "uploaded_at": uploaded_at,
                            "chunk_size": request.chunk_size,
                            "chunk_overlap": request.chunk_overlap,
                        },
                    },
                )
            )
            await repository.set_embedding(document.id, vector)
            document_ids.append(document.id)

        processing_time = elapsed_ms(start)
        await record_event(
            db_session,
            event_type="document_uploaded",
            user_id=user.id,
            payload={
                "title": title,
                "filename": request.file_name,
                "chunks_created": len(document_ids),
                "chunks_skipped": total - len(document_ids),
                "text_length": len(text),
                "processing_time_ms": processing_time,
            },
        )
        await db_session.commit()

        logger.info(
            "Indexed %s into %d/%d chunks in %dms",
            request.file_name,
            len(document_ids),
            total,
            processing_time,
        )
        return DocumentUploadResponse(
            title=title,
            filename=request.file_name,
            chunks_created=len(document_ids),
            document_ids=document_ids,
            storage_path=storage_path,
            processing_time=processing_time,
            text_length=len(text),
            is_public=request.is_public,
        )

    async def list_documents(
        self,
        *,
        user: AuthenticatedUser,
        page: int,
        limit: int,
        search: Optional[str],
        tag: Optional[str],
        mime_type: Optional[str],
        is_public: Optional[bool],
        uploaded_by: Optional[str],
        db_session: AsyncSession,
    ) -> Tuple[List[Document], int]:
        return await DocumentRepository(db_session).list_filtered(
            offset=(page - 1) * limit,
            limit=limit,
            search=search,
            tag=tag,
            mime_type=mime_type,
            is_public=is_public,
            uploaded_by=uploaded_by,
            visible_to=None if user.is_admin else user.id,
        )

    async def get_stats(self, *, db_session: AsyncSession) -> dict:
        return await DocumentRepository(db_session).get_stats()

    async def get_document(
        self, document_id: str, user: AuthenticatedUser, *, db_session: AsyncSession
    ) -> Tuple[Document, Optional[List[Document]]]:
        """Return the document and, for multi-chunk uploads, all of its chunks."""
        repository = DocumentRepository(db_session)
        document = await repository.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        if not document.readable_by(user.id, user.is_admin):
            raise DocumentNotFoundError(document_id)

        chunks = None
        if document.total_chunks > 1:
            chunks = await repository.get_chunks(document.base_title)
        return document, chunks

    async def update_document(
        self,
        document_id: str,
        changes: dict,
        user: AuthenticatedUser,
        *,
        db_session: AsyncSession,
    ) -> Document:
        if not changes:
            raise ValidationError("No fields to update")

        repository = DocumentRepository(db_session)
        document = await repository.update_by_id(document_id, **changes)
        if document is None:
            raise DocumentNotFoundError(document_id)

        await record_event(
            db_session,
            event_type="document_updated",
            user_id=user.id,
            payload={
                "document_id": document_id,
                "updated_fields": [f.rstrip("_") for f in changes],
            },
        )
        await db_session.commit()
        return document

    async def delete_document(
        self, document_id: str, user: AuthenticatedUser, *, db_session: AsyncSession
    ) -> bool:
        """Delete one chunk; returns whether the stored file was removed with it."""
        repository = DocumentRepository(db_session)
        document = await repository.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)

        storage_path = document.storage_path
        last_reference = bool(storage_path) and (
            await repository.count_by_storage_path(storage_path) <= 1
        )
        await repository.delete(document_id)
        await record_event(
            db_session,
            event_type="document_deleted",
            user_id=user.id,
            payload={
                "document_id": document_id,
                "title": document.title,
                "had_storage_file": bool(storage_path),
            },
        )
        await db_session.commit()

        file_removed = False
        if last_reference:
            try:
                await self.storage.remove_object(storage_path)
                file_removed = True
            except S3Error as e:
                logger.warning("Could not remove stored file %s: %s", storage_path, e)
        return file_removed

    async def reindex_document(
        self, document_id: str, user: AuthenticatedUser, *, db_session: AsyncSession
    ) -> Document:
        self._require_embeddings()
        repository = DocumentRepository(db_session)
        document = await repository.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)

        try:
            vector = await self.embeddings.embed_query(document.content)
        except OpenAIError as e:
            raise ExternalServiceError("embeddings", str(e)) from e

        await repository.set_embedding(document.id, vector)
        await record_event(
            db_session,
            event_type="document_reindexed",
            user_id=user.id,
            payload={"document_id": document_id, "title": document.title},
        )
        await db_session.commit()
        await db_session.refresh(document)
        return document
