from typing import Optional

from sqlalchemy import select

from api.features.takeover.entities.takeover import Takeover
from api.shared.base import BaseRepository


class TakeoverRepository(BaseRepository[Takeover]):
    model = Takeover

    async def get_active(self, conversation_id: str) -> Optional[Takeover]:
        stmt = (
            select(Takeover)
            .where(Takeover.conversation_id == conversation_id, Takeover.active.is_(True))
            .order_by(Takeover.started_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
