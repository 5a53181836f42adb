from datetime import datetime

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from api.shared.entities.base import BaseEntity


class RateLimit(BaseEntity):
    """One row per accepted request inside a rate-limit window."""

    __tablename__ = "rate_limits"

    identifier: Mapped[str] = mapped_column(String(255), nullable=False)
    endpoint: Mapped[str] = mapped_column(String(64), nullable=False)
    window_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    request_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
