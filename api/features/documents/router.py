"""Knowledge-base upload and management endpoints."""
import logging
from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.documents.controller import DocumentController
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
from api.shared.auth import AuthenticatedUser, get_current_user, require_admin
from api.shared.db import get_db_session
from api.shared.exceptions import handler_errors
from api.shared.response import ResponseModel
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()
logger = logging.getLogger("chatdesk.documents.router")

UPLOAD_ERROR_CODE = "DOCUMENT_UPLOAD_ERROR"
ERROR_CODE = "DOCUMENT_MANAGEMENT_ERROR"


@router.post("/upload", response_model=ResponseModel[DocumentUploadResponse])
@inject
async def upload_document(
    request: DocumentUploadRequest,
    user: AuthenticatedUser = Depends(require_admin),
    controller: DocumentController = Depends(
        Provide[DependencyContainer.controllers.document_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Extract, chunk and embed a document into the knowledge base."""
    with handler_errors(UPLOAD_ERROR_CODE, logger):
        result = await controller.upload_document(
            request, user=user, db_session=db_session
        )
    return ResponseModel.success(data=result)


@router.get("", response_model=ResponseModel[DocumentListResponse])
@inject
async def list_documents(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    tag: Optional[str] = Query(None),
    mime_type: Optional[str] = Query(None, alias="mimeType"),
    is_public: Optional[bool] = Query(None, alias="isPublic"),
    uploaded_by: Optional[str] = Query(None, alias="uploadedBy"),
    user: AuthenticatedUser = Depends(get_current_user),
    controller: DocumentController = Depends(
        Provide[DependencyContainer.controllers.document_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    with handler_errors(ERROR_CODE, logger):
        result = await controller.list_documents(
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
    return ResponseModel.success(data=result)


@router.get("/stats", response_model=ResponseModel[DocumentStatsResponse])
@inject
async def document_stats(
    _: AuthenticatedUser = Depends(get_current_user),
    controller: DocumentController = Depends(
        Provide[DependencyContainer.controllers.document_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    with handler_errors(ERROR_CODE, logger):
        result = await controller.get_stats(db_session=db_session)
    return ResponseModel.success(data=result)


@router.get("/{document_id}", response_model=ResponseModel[DocumentDetailDTO])
@inject
async def get_document(
    document_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    controller: DocumentController = Depends(
        Provide[DependencyContainer.controllers.document_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    with handler_errors(ERROR_CODE, logger):
        result = await controller.get_document(
            document_id, user=user, db_session=db_session
        )
    return ResponseModel.success(data=result)


@router.patch("/{document_id}", response_model=ResponseModel[DocumentDTO])
@inject
async def update_document(
    document_id: str,
    request: DocumentUpdateRequest,
    user: AuthenticatedUser = Depends(require_admin),
    controller: DocumentController = Depends(
        Provide[DependencyContainer.controllers.document_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    with handler_errors(ERROR_CODE, logger):
        result = await controller.update_document(
            document_id, request, user=user, db_session=db_session
        )
    return ResponseModel.success(data=result)


@router.delete("/{document_id}", response_model=ResponseModel[DocumentDeleteResponse])
@inject
async def delete_document(
    document_id: str,
    user: AuthenticatedUser = Depends(require_admin),
    controller: DocumentController = Depends(
        Provide[DependencyContainer.controllers.document_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    with handler_errors(ERROR_CODE, logger):
        result = await controller.delete_document(
            document_id, user=user, db_session=db_session
        )
    return ResponseModel.success(data=result)


@router.post("/{document_id}/reindex", response_model=ResponseModel[DocumentDTO])
@inject
async def reindex_document(
    document_id: str,
    user: AuthenticatedUser = Depends(require_admin),
    controller: DocumentController = Depends(
        Provide[DependencyContainer.controllers.document_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Recompute the embedding of one chunk."""
    with handler_errors(ERROR_CODE, logger):
        result = await controller.reindex_document(
            document_id, user=user, db_session=db_session
        )
    return ResponseModel.success(data=result)
