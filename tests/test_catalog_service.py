from __future__ import annotations

import asyncio

import pytest

from app.errors import NotFound, ProviderTimeout, ProviderUnavailable
from app.models import Item, ItemDetail
from app.services.catalog import CatalogService


class StaticProvider:
    """Provider stub returning canned results or raising a fixed error."""

    def __init__(self, items: list[Item] | None = None, error: Exception | None = None):
        self.items = items or []
        self.error = error
        self.calls: list[tuple[str, str, object]] = []

    async def search(self, kind: str, query: str) -> list[Item]:
        self.calls.append(("search", kind, query))
        if self.error is not None:
            raise self.error
        return [item for item in self.items if item.item_type == kind]

    async def discover(self, kind: str, page: int = 1) -> list[Item]:
        self.calls.append(("discover", kind, page))
        if self.error is not None:
            raise self.error
        return [item for item in self.items if item.item_type == kind]

    async def detail(self, kind: str, item_id: str) -> ItemDetail:
        if self.error is not None:
            raise self.error
        for item in self.items:
            if item.item_id == item_id and item.item_type == kind:
                return ItemDetail(**item.model_dump())
        raise NotFound(f"{kind} {item_id} not found")


class CrashingProvider(StaticProvider):
    async def search(self, kind: str, query: str) -> list[Item]:
        raise RuntimeError("provider bug")


ATTACK_ON_TITAN = Item(item_id="16498", item_type="anime", title="Attack on Titan")


def test_search_merges_healthy_sources_and_flags_timeouts():
    """Attack on Titan survives when both TMDB kinds time out."""

    anime = StaticProvider([ATTACK_ON_TITAN])
    tmdb = StaticProvider(error=ProviderTimeout("tmdb", "request timed out"))
    service = CatalogService({"anime": anime, "tv": tmdb, "movie": tmdb})

    result = asyncio.run(service.search(("anime", "tv", "movie"), "  Attack "))

    assert result.items == [ATTACK_ON_TITAN]
    assert result.failures == {"tv": "ProviderTimeout", "movie": "ProviderTimeout"}
    assert result.partial is True
    assert anime.calls == [("search", "anime", "Attack")]


def test_search_keeps_kind_order_and_drops_duplicates():
    show = Item(item_id="1396", item_type="tv", title="Breaking Bad")
    film = Item(item_id="603", item_type="movie", title="The Matrix")
    tmdb = StaticProvider([film, show, show])
    service = CatalogService({"anime": StaticProvider(), "tv": tmdb, "movie": tmdb})

    result = asyncio.run(service.search(("anime", "tv", "movie"), "query"))

    assert [item.key for item in result.items] == [("1396", "tv"), ("603", "movie")]
    assert result.partial is False
    assert result.by_kind() == {"tv": [show], "movie": [film]}


def test_unexpected_provider_errors_are_flagged():
    service = CatalogService({"anime": CrashingProvider()})

    result = asyncio.run(service.search(("anime",), "Frieren"))

    assert result.items == []
    assert result.failures == {"anime": "UnexpectedError"}


def test_discover_passes_page_through():
    anime = StaticProvider([ATTACK_ON_TITAN])
    service = CatalogService({"anime": anime})

    result = asyncio.run(service.discover(("anime",), page=4))

    assert result.items == [ATTACK_ON_TITAN]
    assert anime.calls == [("discover", "anime", 4)]


@pytest.mark.parametrize(
    "call",
    [
        lambda service: service.search(("anime",), "   "),
        lambda service: service.discover(("anime",), page=0),
    ],
)
def test_invalid_arguments_are_rejected(call):
    service = CatalogService({"anime": StaticProvider()})

    with pytest.raises(ValueError):
        asyncio.run(call(service))


def test_unregistered_kind_is_rejected():
    service = CatalogService({"anime": StaticProvider()})

    assert service.kinds == ("anime",)
    with pytest.raises(ValueError):
        service.provider_for("movie")


def test_detail_propagates_provider_errors():
    anime = StaticProvider([ATTACK_ON_TITAN])
    service = CatalogService(
        {"anime": anime, "tv": StaticProvider(error=ProviderUnavailable("tmdb", "HTTP 500"))}
    )

    detail = asyncio.run(service.detail("anime", "16498"))
    assert detail.title == "Attack on Titan"

    with pytest.raises(NotFound):
        asyncio.run(service.detail("anime", "1"))
    with pytest.raises(ProviderUnavailable):
        asyncio.run(service.detail("tv", "1396"))
