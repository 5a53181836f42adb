"""Per-user request budget backed by the ``rate_limits`` table.

Count-then-insert without a lock: concurrent requests can overshoot the budget slightly.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.shared.auth import AuthenticatedUser, get_current_user
from api.shared.db import get_db_session
from api.shared.entities.rate_limit import RateLimit
from api.shared.exceptions import RateLimitError
from core.settings import SETTINGS

logger = logging.getLogger("chatdesk.rate_limit")


class RateLimiter:
    def __init__(
        self,
        max_requests: Optional[int] = None,
        window_minutes: Optional[int] = None,
    ):
        self.max_requests = max_requests or SETTINGS.LIMITS.RATE_LIMIT_MAX_REQUESTS
        self.window_minutes = window_minutes or SETTINGS.LIMITS.RATE_LIMIT_WINDOW_MINUTES

    async def check(self, session: AsyncSession, identifier: str, endpoint: str) -> bool:
        """Return False when the budget is spent; otherwise record the request."""
        window_start = datetime.now(timezone.utc) - timedelta(minutes=self.window_minutes)
        stmt = select(func.coalesce(func.sum(RateLimit.request_count), 0)).where(
            RateLimit.identifier == identifier,
            RateLimit.endpoint == endpoint,
            RateLimit.window_start >= window_start,
        )
        try:
            current = int((await session.execute(stmt)).scalar() or 0)
        except SQLAlchemyError as e:
            logger.warning("Rate limit lookup failed, allowing request: %s", e)
            await session.rollback()
            return True

        if current >= self.max_requests:
            return False

        session.add(RateLimit(identifier=identifier, endpoint=endpoint, request_count=1))
        await session.commit()
        return True


def enforce_rate_limit(endpoint: str) -> Callable:
    """Dependency factory rejecting callers over their budget with 429."""
    limiter = RateLimiter()

    async def dependency(
        user: AuthenticatedUser = Depends(get_current_user),
        db_session: AsyncSession = Depends(get_db_session),
    ) -> None:
        if not await limiter.check(db_session, user.id, endpoint):
            raise RateLimitError(
                f"Rate limit exceeded: {limiter.max_requests} requests per "
                f"{limiter.window_minutes} minutes"
            )

    return dependency
