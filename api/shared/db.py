"""Request-scoped database session for the feature routers."""
from typing import AsyncIterator

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from infra.resources import DatabaseResource


@inject
async def get_db_session(
    database: DatabaseResource = Depends(Provide["infrastructure.database"]),
) -> AsyncIterator[AsyncSession]:
    """Open one session per request.

    Anything left uncommitted when the handler raises is rolled back before
    the session goes back to the pool.
    """
    session = database.get_session()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
