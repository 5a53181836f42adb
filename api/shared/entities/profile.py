"""User profile, keyed by the auth server's user id."""
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from api.shared.entities.base import BaseEntity, str_enum


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Profile(BaseEntity):
    email: Mapped[Optional[str]] = mapped_column(String(320))
    full_name: Mapped[Optional[str]] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(
        str_enum(UserRole, 16), default=UserRole.USER, nullable=False
    )
