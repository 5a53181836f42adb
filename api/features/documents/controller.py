"""Controller for the Documents feature."""
import math
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from api.features.documents.dtos import (
    DocumentDeleteResponse,
    DocumentDetailDTO,
    DocumentDTO,
    DocumentListResponse,
    DocumentStatsResponse,
    DocumentUpdateRequest,
    DocumentUploadRequest,
    DocumentUploadResponse,
)
from api.features.documents.service import DocumentService
from api.shared.auth import AuthenticatedUser
from api.shared.dtos import PaginationInfo


class DocumentController:
    """Maps document service results onto response DTOs."""

    def __init__(self, document_service: DocumentService):
        self.document_service = document_service

    async def upload_document(
        self,
        request: DocumentUploadRequest,
        *,
        user: AuthenticatedUser,
        db_session: AsyncSession,
    ) -> DocumentUploadResponse:
        return await self.document_service.upload_document(
            request, user, db_session=db_session
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
    ) -> DocumentListResponse:
        documents, total = await self.document_service.list_documents(
            user=user,
            page=page,
            limit=limit,
            search=search,
            tag=tag,
            mime_type=mime_type,
            is_public=is_public,
            uploaded_by=uploaded_by,
            db_session=db_session,
        )
        return DocumentListResponse(
            documents=[DocumentDTO.from_entity(d) for d in documents],
            pagination=PaginationInfo(
                page=page,
                limit=limit,
                total=total,
                total_pages=math.ceil(total / limit) if limit else 0,
            ),
        )

    async def get_stats(self, *, db_session: AsyncSession) -> DocumentStatsResponse:
        stats = await self.document_service.get_stats(db_session=db_session)
        return DocumentStatsResponse(**stats)

    async def get_document(
        self, document_id: str, *, user: AuthenticatedUser, db_session: AsyncSession
    ) -> DocumentDetailDTO:
        document, chunks = await self.document_service.get_document(
            document_id, user, db_session=db_session
        )
        detail = DocumentDetailDTO(**DocumentDTO.from_entity(document).model_dump())
        if chunks is not None:
            detail.all_chunks = [DocumentDTO.from_entity(c) for c in chunks]
        return detail

    async def update_document(
        self,
        document_id: str,
        request: DocumentUpdateRequest,
        *,
        user: AuthenticatedUser,
        db_session: AsyncSession,
    ) -> DocumentDTO:
        document = await self.document_service.update_document(
            document_id, request.changes(), user, db_session=db_session
        )
        return DocumentDTO.from_entity(document)

    async def delete_document(
        self, document_id: str, *, user: AuthenticatedUser, db_session: AsyncSession
    ) -> DocumentDeleteResponse:
        file_removed = await self.document_service.delete_document(
            document_id, user, db_session=db_session
        )
        return DocumentDeleteResponse(
            deleted=True, document_id=document_id, file_removed=file_removed
        )

    async def reindex_document(
        self, document_id: str, *, user: AuthenticatedUser, db_session: AsyncSession
    ) -> DocumentDTO:
        document = await self.document_service.reindex_document(
            document_id, user, db_session=db_session
        )
        return DocumentDTO.from_entity(document)
