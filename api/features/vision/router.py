import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.vision.dtos import VisionRequest, VisionResponse
from api.features.vision.service import VisionService
from api.shared.auth import AuthenticatedUser, get_current_user
from api.shared.db import get_db_session
from api.shared.exceptions import handler_errors
from api.shared.rate_limit import enforce_rate_limit
from api.shared.response import ResponseModel
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()
logger = logging.getLogger("chatdesk.vision.router")


@router.post(
    "",
    response_model=ResponseModel[VisionResponse],
    dependencies=[Depends(enforce_rate_limit("vision"))],
)
@inject
async def analyze_image(
    request: VisionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: VisionService = Depends(Provide[DependencyContainer.services.vision_service]),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Describe an image given by URL or base64 data."""
    with handler_errors("VISION_ERROR", logger):
        result = await service.analyze(request, user, db_session=db_session)
    return ResponseModel.success(data=result)
