"""Base repository with common CRUD operations."""

from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auditflow.db.base import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Async repository for one table, keyed by a string primary key.

    Subclasses set ``model_class`` and ``pk_field``. Methods flush but never
    commit; the storage gateway owns the session and its transaction.
    """

    model_class: ClassVar[type[Base]]
    pk_field: ClassVar[str]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, pk_value: str) -> T | None:
        return await self.get_where(**{self.pk_field: pk_value})

    async def get_where(self, **filters: Any) -> T | None:
        """Return the single row matching every ``column=value`` filter, or None."""
        stmt = select(self.model_class).filter_by(**filters)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_where(
        self,
        *,
        order_by: tuple = (),
        limit: int | None = None,
        offset: int = 0,
        **filters: Any,
    ) -> list[T]:
        stmt = select(self.model_class).filter_by(**filters).order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, **values: Any) -> T:
        row = self.model_class(**values)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(self, row: T, **values: Any) -> T:
        for key, value in values.items():
            setattr(row, key, value)
        await self.session.flush()
        return row

    async def delete(self, row: T) -> None:
        await self.session.delete(row)
        await self.session.flush()
