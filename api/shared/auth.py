"""Bearer-token authentication and admin authorization dependencies."""
import logging
from dataclasses import dataclass
from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.shared.db import get_db_session
from api.shared.entities.profile import Profile, UserRole
from api.shared.exceptions import AuthenticationError, AuthorizationError
from infra.auth_client import AuthClient, InvalidTokenError

logger = logging.getLogger("chatdesk.auth")


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: Optional[str] = None
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def extract_bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise AuthenticationError("Missing authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Invalid authorization header")
    return token.strip()


async def load_role(session: AsyncSession, user_id: str) -> UserRole:
    result = await session.execute(select(Profile.role).where(Profile.id == user_id))
    return result.scalar_one_or_none() or UserRole.USER


@inject
async def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db_session: AsyncSession = Depends(get_db_session),
    auth_client: AuthClient = Depends(Provide["infrastructure.auth_client"]),
) -> AuthenticatedUser:
    token = extract_bearer_token(authorization)
    try:
        user = await auth_client.get_user(token)
    except InvalidTokenError as e:
        logger.info("Rejected token: %s", e)
        raise AuthenticationError("Invalid or expired token") from e

    role = await load_role(db_session, user.id)
    return AuthenticatedUser(id=user.id, email=user.email, role=role)


async def require_admin(
    user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    if not user.is_admin:
        raise AuthorizationError("Admin access required")
    return user


def ensure_admin(user: AuthenticatedUser) -> None:
    """For handlers where only some actions are admin-gated."""
    if not user.is_admin:
        raise AuthorizationError("Admin access required")
