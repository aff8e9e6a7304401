"""Durable library storage keyed by user, item and item type."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import LibraryRecord
from ..errors import StoreUnavailable
from ..models import ItemType, LibraryEntry, LibraryStatus

logger = logging.getLogger(__name__)

_UPSERT_INSERTS: dict[str, Any] = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}
_KEY_COLUMNS = ("user_id", "item_id", "item_type")
_OVERWRITTEN_COLUMNS = ("title", "poster_url", "status", "rating", "updated_at")


class LibraryStore(Protocol):
    """Keyed storage enforcing one entry per ``(user_id, item_id, item_type)``."""

    async def upsert(self, entry: LibraryEntry) -> LibraryEntry: ...

    async def list(
        self,
        user_id: int,
        item_type: ItemType | None = None,
        status: LibraryStatus | None = None,
    ) -> list[LibraryEntry]: ...


class SQLLibraryStore:
    """Library store persisted through SQLAlchemy.

    Saves are a single ``INSERT ... ON CONFLICT DO UPDATE`` so the unique
    constraint alone decides between insert and overwrite; concurrent saves of
    the same key resolve as last write wins.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def upsert(self, entry: LibraryEntry) -> LibraryEntry:
        now = datetime.utcnow()
        values = entry.model_dump(exclude={"id"})
        values.update(created_at=now, updated_at=now)

        async with self._session_factory() as session:
            insert = self._insert_for(session)
            stmt = insert(LibraryRecord).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=list(_KEY_COLUMNS),
                set_={name: stmt.excluded[name] for name in _OVERWRITTEN_COLUMNS},
            ).returning(LibraryRecord)
            try:
                result = await session.scalars(
                    stmt, execution_options={"populate_existing": True}
                )
                stored = LibraryEntry.model_validate(result.one())
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.warning(
                    "Failed to upsert library entry %s for user %s: %s",
                    entry.item_id,
                    entry.user_id,
                    exc,
                )
                raise StoreUnavailable("Library entry could not be saved") from exc
        return stored

    async def list(
        self,
        user_id: int,
        item_type: ItemType | None = None,
        status: LibraryStatus | None = None,
    ) -> list[LibraryEntry]:
        stmt = select(LibraryRecord).where(LibraryRecord.user_id == user_id)
        if item_type is not None:
            stmt = stmt.where(LibraryRecord.item_type == item_type)
        if status is not None:
            stmt = stmt.where(LibraryRecord.status == status)
        stmt = stmt.order_by(LibraryRecord.id)

        async with self._session_factory() as session:
            try:
                result = await session.scalars(stmt)
                records = result.all()
            except SQLAlchemyError as exc:
                logger.warning("Failed to load library for user %s: %s", user_id, exc)
                raise StoreUnavailable("Library could not be loaded") from exc
        return [LibraryEntry.model_validate(record) for record in records]

    @staticmethod
    def _insert_for(session: AsyncSession) -> Any:
        dialect = session.bind.dialect.name if session.bind is not None else ""
        try:
            return _UPSERT_INSERTS[dialect]
        except KeyError as exc:
            raise StoreUnavailable(
                f"Upserts are not supported on the {dialect or 'unknown'} dialect"
            ) from exc
