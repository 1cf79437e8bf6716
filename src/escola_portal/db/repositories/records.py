"""
escola_portal.db.repositories.records

Generic data store over the ORM models.

Responsibilities:
- Query/insert/update rows by model and predicate.
- Stay policy-free: tenant narrowing is applied by `auth.scoping.ScopedStore`, which is
  the only caller on request paths.
"""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy import ColumnElement, select
from sqlalchemy.ext.asyncio import AsyncSession

from escola_portal.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class RecordRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def query(
        self, model: type[ModelT], *where: ColumnElement[bool], limit: int | None = None
    ) -> list[ModelT]:
        stmt = select(model).where(*where).order_by(model.id)  # type: ignore[attr-defined]
        if limit is not None:
            stmt = stmt.limit(limit)
        return list((await self._session.execute(stmt)).scalars().all())

    async def get(self, model: type[ModelT], record_id: int) -> ModelT | None:
        return await self._session.get(model, record_id)

    async def find_one(self, model: type[ModelT], *where: ColumnElement[bool]) -> ModelT | None:
        stmt = select(model).where(*where).limit(1)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def insert(self, model: type[ModelT], values: dict[str, Any]) -> ModelT:
        row = model(**values)
        self._session.add(row)
        await self._session.flush()
        return row

    async def update(self, row: ModelT, values: dict[str, Any]) -> ModelT:
        for key, value in values.items():
            setattr(row, key, value)
        await self._session.flush()
        return row

    async def commit(self) -> None:
        await self._session.commit()
