import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.enhance.dtos import EnhanceRequest, EnhanceResponse
from api.features.enhance.service import EnhanceService
from api.shared.auth import AuthenticatedUser, require_admin
from api.shared.db import get_db_session
from api.shared.exceptions import handler_errors
from api.shared.response import ResponseModel
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()
logger = logging.getLogger("chatdesk.enhance.router")


@router.post("", response_model=ResponseModel[EnhanceResponse])
@inject
async def enhance_text(
    request: EnhanceRequest,
    user: AuthenticatedUser = Depends(require_admin),
    service: EnhanceService = Depends(Provide[DependencyContainer.services.enhance_service]),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Rewrite a message in the requested style and store it as a draft."""
    with handler_errors("ENHANCE_ERROR", logger):
        result = await service.enhance(request, user, db_session=db_session)
    return ResponseModel.success(data=result)
