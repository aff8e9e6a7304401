from __future__ import annotations

import asyncio

from sqlalchemy import create_engine, inspect, select, text

from app.database import Database
from app.db_models import LibraryRecord
from app.models import LibraryEntry
from app.services.library_store import SQLLibraryStore


def _initialise_legacy_schema(database_path: str) -> None:
    """Create a legacy library table lacking the bookkeeping columns."""

    engine = create_engine(f"sqlite:///{database_path}")
    try:
        with engine.begin() as connection:
            connection.execute(
                text(
                    """
                    CREATE TABLE library (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        item_id VARCHAR(64) NOT NULL,
                        item_type VARCHAR(16) NOT NULL,
                        title TEXT NOT NULL,
                        poster_url VARCHAR(512),
                        status VARCHAR(16) NOT NULL,
                        rating FLOAT,
                        UNIQUE (user_id, item_id, item_type)
                    )
                    """
                )
            )
            connection.execute(
                text(
                    "INSERT INTO library (user_id, item_id, item_type, title, status) "
                    "VALUES (1, '16498', 'anime', 'Attack on Titan', 'watching')"
                )
            )
    finally:
        engine.dispose()


def _entry(**overrides) -> LibraryEntry:
    values = {
        "user_id": 1,
        "item_id": "16498",
        "item_type": "anime",
        "title": "Attack on Titan",
        "status": "planning",
        "rating": None,
    }
    values.update(overrides)
    return LibraryEntry(**values)


def test_create_all_adds_bookkeeping_columns(tmp_path) -> None:
    """Schema migrations should backfill created_at and updated_at."""

    database_path = tmp_path / "legacy.db"
    _initialise_legacy_schema(str(database_path))

    database = Database(f"sqlite+aiosqlite:///{database_path}")
    asyncio.run(database.create_all())
    asyncio.run(database.dispose())

    inspector_engine = create_engine(f"sqlite:///{database_path}")
    try:
        inspector = inspect(inspector_engine)
        columns = {column["name"] for column in inspector.get_columns("library")}
        with inspector_engine.connect() as connection:
            created_at = connection.execute(
                text("SELECT created_at FROM library WHERE item_id = '16498'")
            ).scalar_one()
    finally:
        inspector_engine.dispose()

    assert {"created_at", "updated_at"} <= columns
    assert created_at is not None


def test_upsert_keeps_one_row_per_key_and_last_write_wins(tmp_path) -> None:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'library.db'}")
    store = SQLLibraryStore(database.session_factory)

    async def scenario():
        await database.create_all()
        try:
            first = await store.upsert(_entry(status="planning", rating=None))
            second = await store.upsert(_entry(status="completed", rating=8.5))
            async with database.session_factory() as session:
                rows = (await session.scalars(select(LibraryRecord))).all()
            return first, second, rows
        finally:
            await database.dispose()

    first, second, rows = asyncio.run(scenario())

    assert first.id is not None
    assert second.id == first.id
    assert (second.status, second.rating) == ("completed", 8.5)
    assert len(rows) == 1
    assert (rows[0].status, rows[0].rating) == ("completed", 8.5)


def test_same_item_id_under_other_type_is_a_separate_entry(tmp_path) -> None:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'library.db'}")
    store = SQLLibraryStore(database.session_factory)

    async def scenario():
        await database.create_all()
        try:
            await store.upsert(_entry(item_id="100", item_type="tv", title="Show"))
            await store.upsert(_entry(item_id="100", item_type="movie", title="Film"))
            await store.upsert(_entry(user_id=2, item_id="100", item_type="movie", title="Film"))
            return (
                await store.list(1),
                await store.list(1, item_type="movie"),
                await store.list(1, status="completed"),
            )
        finally:
            await database.dispose()

    everything, movies, completed = asyncio.run(scenario())

    assert [entry.title for entry in everything] == ["Show", "Film"]
    assert [entry.key for entry in movies] == [(1, "100", "movie")]
    assert completed == []


def test_create_all_dedupes_and_indexes_unkeyed_legacy_table(tmp_path) -> None:
    """Older tables without the unique key keep only the newest row per key."""

    database_path = tmp_path / "unkeyed.db"
    engine = create_engine(f"sqlite:///{database_path}")
    try:
        with engine.begin() as connection:
            connection.execute(
                text(
                    "CREATE TABLE library (id INTEGER PRIMARY KEY AUTOINCREMENT, "
                    "user_id INTEGER, item_id VARCHAR(64), item_type VARCHAR(16), "
                    "title TEXT, poster_url VARCHAR(512), status VARCHAR(16), rating FLOAT)"
                )
            )
            for status in ("planning", "watching"):
                connection.execute(
                    text(
                        "INSERT INTO library (user_id, item_id, item_type, title, status) "
                        f"VALUES (1, '603', 'movie', 'The Matrix', '{status}')"
                    )
                )
    finally:
        engine.dispose()

    database = Database(f"sqlite+aiosqlite:///{database_path}")
    store = SQLLibraryStore(database.session_factory)

    async def scenario():
        await database.create_all()
        try:
            before = await store.list(1)
            await store.upsert(
                _entry(item_id="603", item_type="movie", title="The Matrix", status="completed")
            )
            return before, await store.list(1)
        finally:
            await database.dispose()

    before, after = asyncio.run(scenario())

    assert [entry.status for entry in before] == ["watching"]
    assert [(entry.id, entry.status) for entry in after] == [(before[0].id, "completed")]
