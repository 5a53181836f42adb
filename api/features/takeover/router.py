import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.takeover.dtos import TakeoverRequest, TakeoverResult
from api.features.takeover.service import TakeoverService
from api.shared.auth import AuthenticatedUser, require_admin
from api.shared.db import get_db_session
from api.shared.exceptions import handler_errors
from api.shared.response import ResponseModel
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()
logger = logging.getLogger("chatdesk.takeover.router")


@router.post("", response_model=ResponseModel[TakeoverResult])
@inject
async def takeover(
    request: TakeoverRequest,
    admin: AuthenticatedUser = Depends(require_admin),
    service: TakeoverService = Depends(
        Provide[DependencyContainer.services.takeover_service]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Start or end an admin takeover, pause or resume the bot, or report status."""
    with handler_errors("TAKEOVER_ERROR", logger):
        result = await service.handle(request, admin, db_session=db_session)
    return ResponseModel.success(data=result)
