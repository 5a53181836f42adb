import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.search.dtos import RagSearchRequest, RagSearchResponse
from api.features.search.service import SearchService
from api.shared.auth import AuthenticatedUser, get_current_user
from api.shared.db import get_db_session
from api.shared.exceptions import handler_errors
from api.shared.response import ResponseModel
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()
logger = logging.getLogger("chatdesk.search.router")


@router.post("", response_model=ResponseModel[RagSearchResponse])
@inject
async def rag_search(
    request: RagSearchRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: SearchService = Depends(Provide[DependencyContainer.services.search_service]),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Find the document chunks closest to a query."""
    with handler_errors("RAG_SEARCH_ERROR", logger):
        result = await service.search(request, user, db_session=db_session)
    return ResponseModel.success(data=result)
