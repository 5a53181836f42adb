import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.uploads.dtos import UploadRequest, UploadResponse
from api.features.uploads.service import UploadService
from api.shared.auth import AuthenticatedUser, get_current_user
from api.shared.db import get_db_session
from api.shared.exceptions import handler_errors
from api.shared.response import ResponseModel
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()
logger = logging.getLogger("chatdesk.uploads.router")


@router.post("", response_model=ResponseModel[UploadResponse])
@inject
async def upload_file(
    request: UploadRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: UploadService = Depends(Provide[DependencyContainer.services.upload_service]),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Store a chat attachment and optionally link it to a message."""
    with handler_errors("UPLOAD_ERROR", logger):
        result = await service.upload(request, user, db_session=db_session)
    return ResponseModel.success(data=result)
