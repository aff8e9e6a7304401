"""Catalog provider backed by the AniList GraphQL API."""

from __future__ import annotations

import logging
from typing import Any

from ..errors import NotFound, ProviderUnavailable
from ..models import Item, ItemDetail, ItemType
from ..normalizer import normalize, normalize_detail
from .providers import HTTPCatalogProvider

logger = logging.getLogger(__name__)

_MEDIA_FIELDS = """
    id
    title { romaji english native }
    coverImage { large medium }
    description(asHtml: false)
    averageScore
    meanScore
    seasonYear
    startDate { year }
    genres
"""

SEARCH_QUERY = (
    "query ($query: String, $perPage: Int) { Page(perPage: $perPage) { "
    "media(search: $query, type: ANIME) {" + _MEDIA_FIELDS + "} } }"
)
DISCOVER_QUERY = (
    "query ($page: Int, $perPage: Int) { Page(page: $page, perPage: $perPage) { "
    "media(type: ANIME, sort: TRENDING_DESC) {" + _MEDIA_FIELDS + "} } }"
)
DETAIL_QUERY = (
    "query ($id: Int) { Media(id: $id, type: ANIME) {" + _MEDIA_FIELDS + " status } }"
)


class AniListProvider(HTTPCatalogProvider):
    """Serves the ``anime`` kind from AniList."""

    source = "anilist"

    async def search(self, kind: ItemType, query: str) -> list[Item]:
        self._check_kind(kind)
        data = await self._query(
            SEARCH_QUERY,
            {"query": query, "perPage": self._settings.anime_search_page_size},
        )
        return self._normalize_page(data)

    async def discover(self, kind: ItemType, page: int = 1) -> list[Item]:
        self._check_kind(kind)
        data = await self._query(
            DISCOVER_QUERY,
            {"page": max(1, page), "perPage": self._settings.anime_discover_page_size},
        )
        return self._normalize_page(data)

    async def detail(self, kind: ItemType, item_id: str) -> ItemDetail:
        self._check_kind(kind)
        try:
            media_id = int(item_id)
        except (TypeError, ValueError) as exc:
            raise NotFound(f"AniList anime {item_id!r} not found") from exc
        data = await self._query(DETAIL_QUERY, {"id": media_id}, not_found_ok=True)
        media = data.get("Media") if isinstance(data, dict) else None
        if not isinstance(media, dict):
            raise NotFound(f"AniList anime {item_id!r} not found")
        return normalize_detail(media, "anime")

    async def _query(
        self,
        query: str,
        variables: dict[str, Any],
        *,
        not_found_ok: bool = False,
    ) -> Any:
        response = await self._send(
            "POST",
            "",
            json={"query": query, "variables": variables},
            headers={"Accept": "application/json"},
        )
        if response.status_code == 404 and not_found_ok:
            return {}
        if response.status_code >= 400:
            logger.warning(
                "AniList query failed (%s): %s", response.status_code, response.text
            )
            raise ProviderUnavailable(self.source, f"HTTP {response.status_code}")
        payload = self._decode(response)
        if not isinstance(payload, dict):
            raise ProviderUnavailable(self.source, "unexpected response structure")
        errors = payload.get("errors")
        if errors:
            logger.warning("AniList returned GraphQL errors: %s", errors)
            raise ProviderUnavailable(self.source, "GraphQL query failed")
        return payload.get("data") or {}

    def _normalize_page(self, data: Any) -> list[Item]:
        page = data.get("Page") if isinstance(data, dict) else None
        media = page.get("media") if isinstance(page, dict) else None
        if not isinstance(media, list):
            logger.warning("Unexpected AniList page structure")
            return []
        return [normalize(record, "anime") for record in media]

    @staticmethod
    def _check_kind(kind: str) -> None:
        if kind != "anime":
            raise ValueError(f"AniList does not serve {kind!r} items")
