"""Async engine, session factory and schema upkeep for the library store."""

from __future__ import annotations

import logging

from sqlalchemy import Connection, MetaData, inspect, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)

LIBRARY_TABLE = "library"
LIBRARY_KEY = ("user_id", "item_id", "item_type")
LIBRARY_KEY_INDEX = "uq_library_user_item"

# Columns added after the first release, with the statement that backfills them.
_LATE_COLUMNS: tuple[tuple[str, str], ...] = (
    ("created_at", "UPDATE library SET created_at = CURRENT_TIMESTAMP WHERE created_at IS NULL"),
    ("updated_at", "UPDATE library SET updated_at = CURRENT_TIMESTAMP WHERE updated_at IS NULL"),
)


class Base(DeclarativeBase):
    """Declarative base shared by the ORM tables."""

    metadata = MetaData()


class Database:
    """Owns the async engine and hands out sessions to the stores."""

    def __init__(self, database_url: str):
        self._engine: AsyncEngine = create_async_engine(database_url, future=True)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine, expire_on_commit=False
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def create_all(self) -> None:
        """Create missing tables and bring older library tables up to date."""

        from . import db_models  # noqa: F401

        async with self._engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
            await connection.run_sync(_upgrade_library_table)

    async def dispose(self) -> None:
        await self._engine.dispose()


def _upgrade_library_table(connection: Connection) -> None:
    inspector = inspect(connection)
    if LIBRARY_TABLE not in inspector.get_table_names():
        return

    columns = {column["name"] for column in inspector.get_columns(LIBRARY_TABLE)}
    for name, backfill in _LATE_COLUMNS:
        if name in columns:
            continue
        logger.info("Adding %s.%s", LIBRARY_TABLE, name)
        connection.execute(text(f"ALTER TABLE {LIBRARY_TABLE} ADD COLUMN {name} TIMESTAMP"))
        connection.execute(text(backfill))

    if not _has_unique_key(inspector):
        # Upserts conflict on the key, so duplicates must go before the index.
        removed = connection.execute(
            text(
                f"DELETE FROM {LIBRARY_TABLE} WHERE id NOT IN ("
                f"SELECT MAX(id) FROM {LIBRARY_TABLE} GROUP BY {', '.join(LIBRARY_KEY)})"
            )
        ).rowcount
        if removed:
            logger.warning("Removed %s duplicate library rows", removed)
        connection.execute(
            text(
                f"CREATE UNIQUE INDEX {LIBRARY_KEY_INDEX} "
                f"ON {LIBRARY_TABLE} ({', '.join(LIBRARY_KEY)})"
            )
        )


def _has_unique_key(inspector) -> bool:
    wanted = set(LIBRARY_KEY)
    for constraint in inspector.get_unique_constraints(LIBRARY_TABLE):
        if set(constraint["column_names"]) == wanted:
            return True
    for index in inspector.get_indexes(LIBRARY_TABLE):
        if index.get("unique") and set(index["column_names"]) == wanted:
            return True
    return False
