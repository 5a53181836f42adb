"""Declarative base for the chatdesk tables.

Every row carries a UUID primary key (stored as text on the Python side) and
server-maintained ``created_at``/``updated_at`` stamps.
"""
from datetime import datetime
from enum import Enum
from typing import Type
from uuid import uuid4

from sqlalchemy import DateTime, Enum as SQLEnum, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


def str_enum(enum_cls: Type[Enum], length: int = 32) -> SQLEnum:
    """VARCHAR column holding the enum's values, so the API strings land as-is."""
    return SQLEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [member.value for member in members],
    )


def new_id() -> str:
    return str(uuid4())


class BaseEntity(DeclarativeBase):
    @declared_attr.directive
    def __tablename__(cls) -> str:
        # Profile -> profiles; multi-word entities set the name explicitly
        return cls.__name__.lower() + "s"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=new_id)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"{type(self).__name__}<{self.id}>"
