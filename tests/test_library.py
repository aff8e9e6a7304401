"""Library synchronizer behaviour against an in-memory store."""

from __future__ import annotations

import asyncio

import pytest

from app.errors import StoreUnavailable, Unauthenticated, ValidationError
from app.models import Item, LibraryEntry, LibraryFilter
from app.services.library import LibrarySynchronizer, build_entry


class RecordingStore:
    """Keyed in-memory store that records every call."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.upserts: list[LibraryEntry] = []
        self.entries: dict[tuple[int, str, str], LibraryEntry] = {}
        self._next_id = 1

    async def upsert(self, entry: LibraryEntry) -> LibraryEntry:
        self.upserts.append(entry)
        if self.fail:
            raise StoreUnavailable("database is down")
        existing = self.entries.get(entry.key)
        entry_id = existing.id if existing is not None else self._next_id
        if existing is None:
            self._next_id += 1
        stored = entry.model_copy(update={"id": entry_id})
        self.entries[entry.key] = stored
        return stored

    async def list(self, user_id, item_type=None, status=None) -> list[LibraryEntry]:
        return [
            entry
            for entry in sorted(self.entries.values(), key=lambda entry: entry.id or 0)
            if entry.user_id == user_id
            and (item_type is None or entry.item_type == item_type)
            and (status is None or entry.status == status)
        ]


ATTACK_ON_TITAN = Item(
    item_id="16498",
    item_type="anime",
    title="Attack on Titan",
    poster_url="https://img.example.com/aot.jpg",
)


def test_save_issues_exactly_one_upsert():
    store = RecordingStore()
    library = LibrarySynchronizer(store)

    entry = asyncio.run(library.save(7, ATTACK_ON_TITAN, "watching", 9.5))

    assert len(store.upserts) == 1
    assert entry.key == (7, "16498", "anime")
    assert entry.poster_url == "https://img.example.com/aot.jpg"
    assert (entry.status, entry.rating) == ("watching", 9.5)


def test_saving_twice_overwrites_the_entry():
    store = RecordingStore()
    library = LibrarySynchronizer(store)

    first = asyncio.run(library.save(7, ATTACK_ON_TITAN, "planning", None))
    second = asyncio.run(library.save(7, ATTACK_ON_TITAN, "completed", 10.0))

    assert second.id == first.id
    assert list(store.entries.values()) == [second]


def test_anonymous_save_never_reaches_the_store():
    store = RecordingStore()
    library = LibrarySynchronizer(store)

    with pytest.raises(Unauthenticated):
        asyncio.run(library.save(None, ATTACK_ON_TITAN, "watching", None))

    assert store.upserts == []


@pytest.mark.parametrize(
    ("status", "rating"),
    [("dropped", None), ("watching", 7.3), ("watching", 11.0), ("watching", 0.0)],
)
def test_invalid_fields_are_rejected_before_any_store_call(status, rating):
    store = RecordingStore()
    library = LibrarySynchronizer(store)

    with pytest.raises(ValidationError):
        asyncio.run(library.save(7, ATTACK_ON_TITAN, status, rating))

    assert store.upserts == []


def test_build_entry_requires_a_title_and_id():
    with pytest.raises(ValidationError):
        build_entry(1, Item(item_id="1", item_type="movie", title="  "), "planning", None)
    with pytest.raises(ValidationError):
        build_entry(1, Item(item_id=" ", item_type="movie", title="Film"), "planning", None)
    with pytest.raises(ValidationError):
        build_entry(True, ATTACK_ON_TITAN, "planning", None)  # type: ignore[arg-type]


def test_store_failures_propagate():
    library = LibrarySynchronizer(RecordingStore(fail=True))

    with pytest.raises(StoreUnavailable):
        asyncio.run(library.save(7, ATTACK_ON_TITAN, "planning", None))


def test_rate_toggles_the_current_rating_off():
    store = RecordingStore()
    library = LibrarySynchronizer(store)

    rated = asyncio.run(
        library.rate(7, ATTACK_ON_TITAN, "completed", current=None, proposed=8.5)
    )
    cleared = asyncio.run(
        library.rate(7, ATTACK_ON_TITAN, "completed", current=8.5, proposed=8.5)
    )

    assert rated.rating == 8.5
    assert cleared.rating is None
    assert len(store.upserts) == 2


def test_list_applies_filters_and_sorting():
    store = RecordingStore()
    library = LibrarySynchronizer(store)
    frieren = Item(item_id="154587", item_type="anime", title="Frieren")
    matrix = Item(item_id="603", item_type="movie", title="The Matrix")

    async def scenario():
        await library.save(7, ATTACK_ON_TITAN, "completed", 9.0)
        await library.save(7, frieren, "watching", 10.0)
        await library.save(7, matrix, "completed", 8.0)
        await library.save(8, matrix, "planning", None)
        return (
            await library.list(7),
            await library.list(7, LibraryFilter(status="completed", sort_by="rating")),
            await library.list(7, LibraryFilter(item_type="anime", text="fri")),
            await library.list(7, LibraryFilter(sort_by="added")),
        )

    by_title, completed, searched, newest = asyncio.run(scenario())

    assert [entry.title for entry in by_title] == ["Attack on Titan", "Frieren", "The Matrix"]
    assert [entry.title for entry in completed] == ["Attack on Titan", "The Matrix"]
    assert [entry.title for entry in searched] == ["Frieren"]
    assert [entry.title for entry in newest] == ["The Matrix", "Frieren", "Attack on Titan"]

    with pytest.raises(Unauthenticated):
        asyncio.run(library.list(None))
