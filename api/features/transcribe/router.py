import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.transcribe.dtos import TranscribeRequest, TranscribeResponse
from api.features.transcribe.service import TranscribeService
from api.shared.auth import AuthenticatedUser, get_current_user
from api.shared.db import get_db_session
from api.shared.exceptions import handler_errors
from api.shared.rate_limit import enforce_rate_limit
from api.shared.response import ResponseModel
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()
logger = logging.getLogger("chatdesk.transcribe.router")


@router.post(
    "",
    response_model=ResponseModel[TranscribeResponse],
    dependencies=[Depends(enforce_rate_limit("transcribe"))],
)
@inject
async def transcribe(
    request: TranscribeRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: TranscribeService = Depends(
        Provide[DependencyContainer.services.transcribe_service]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Transcribe base64 audio to text."""
    with handler_errors("TRANSCRIPTION_ERROR", logger):
        result = await service.transcribe(request, user, db_session=db_session)
    return ResponseModel.success(data=result)
