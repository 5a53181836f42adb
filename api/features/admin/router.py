import logging
from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.admin.dtos import (
    AdminConversationList,
    AnalyticsResponse,
    DashboardResponse,
)
from api.features.admin.service import AdminService
from api.shared.auth import AuthenticatedUser, require_admin
from api.shared.db import get_db_session
from api.shared.exceptions import handler_errors
from api.shared.response import ResponseModel
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()
logger = logging.getLogger("chatdesk.admin.router")

ERROR_CODE = "ADMIN_ERROR"


@router.get("/dashboard", response_model=ResponseModel[DashboardResponse])
@inject
async def dashboard(
    _: AuthenticatedUser = Depends(require_admin),
    service: AdminService = Depends(Provide[DependencyContainer.services.admin_service]),
    db_session: AsyncSession = Depends(get_db_session),
):
    with handler_errors(ERROR_CODE, logger):
        result = await service.dashboard(db_session=db_session)
    return ResponseModel.success(data=result)


@router.get("/conversations", response_model=ResponseModel[AdminConversationList])
@inject
async def conversations(
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="active, closed, archived or paused"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    _: AuthenticatedUser = Depends(require_admin),
    service: AdminService = Depends(Provide[DependencyContainer.services.admin_service]),
    db_session: AsyncSession = Depends(get_db_session),
):
    with handler_errors(ERROR_CODE, logger):
        result = await service.conversations(
            search=search, status=status, page=page, limit=limit, db_session=db_session
        )
    return ResponseModel.success(data=result)


@router.get("/analytics", response_model=ResponseModel[AnalyticsResponse])
@inject
async def analytics(
    _: AuthenticatedUser = Depends(require_admin),
    service: AdminService = Depends(Provide[DependencyContainer.services.admin_service]),
    db_session: AsyncSession = Depends(get_db_session),
):
    with handler_errors(ERROR_CODE, logger):
        result = await service.analytics(db_session=db_session)
    return ResponseModel.success(data=result)
