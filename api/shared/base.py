"""Async repository base for the chatdesk tables.

Repositories only ``flush``; committing is left to the service that owns the
unit of work so a handler can roll back everything it wrote on failure.
"""
from typing import Any, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.shared.entities.base import BaseEntity

EntityT = TypeVar("EntityT", bound=BaseEntity)


class BaseRepository(Generic[EntityT]):
    model: Type[EntityT]

    def __init__(self, session: AsyncSession):
        self.session = session

    def _where(self, stmt: Select, filters: dict[str, Any]) -> Select:
        # Unknown columns and None values are ignored; sequences become IN (...)
        for name, value in filters.items():
            column = getattr(self.model, name, None)
            if column is None or value is None:
                continue
            if isinstance(value, (list, tuple, set)):
                stmt = stmt.where(column.in_(list(value)))
            else:
                stmt = stmt.where(column == value)
        return stmt

    async def create(self, entity: EntityT) -> EntityT:
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def create_many(self, entities: Sequence[EntityT]) -> List[EntityT]:
        rows = list(entities)
        if not rows:
            return rows
        self.session.add_all(rows)
        await self.session.flush()
        for row in rows:
            await self.session.refresh(row)
        return rows

    async def get_by_id(self, entity_id: str) -> Optional[EntityT]:
        return await self.session.get(self.model, str(entity_id))

    async def update_by_id(self, entity_id: str, **values: Any) -> Optional[EntityT]:
        """Apply ``values`` and return the refreshed row, or None when it is gone."""
        result = await self.session.execute(
            update(self.model)
            .where(self.model.id == str(entity_id))
            .values(**values)
            .returning(self.model)
            .execution_options(synchronize_session="fetch")
        )
        entity = result.scalar_one_or_none()
        if entity is not None:
            await self.session.refresh(entity)
        return entity

    async def delete(self, entity_id: str) -> bool:
        result = await self.session.execute(
            delete(self.model).where(self.model.id == str(entity_id))
        )
        return (result.rowcount or 0) > 0

    async def count(self, **filters: Any) -> int:
        stmt = self._where(select(func.count()).select_from(self.model), filters)
        return int((await self.session.execute(stmt)).scalar() or 0)

    async def list(
        self,
        offset: int = 0,
        limit: int = 100,
        order_by: Optional[str] = None,
        **filters: Any,
    ) -> Tuple[List[EntityT], int]:
        """One page of rows plus the unpaginated total.

        ``order_by`` names a column; a leading ``-`` sorts descending.
        """
        stmt = self._where(select(self.model), filters)
        if order_by:
            column = getattr(self.model, order_by.lstrip("-"), None)
            if column is not None:
                stmt = stmt.order_by(column.desc() if order_by.startswith("-") else column.asc())
        rows = (await self.session.execute(stmt.offset(offset).limit(limit))).scalars().all()
        return list(rows), await self.count(**filters)
