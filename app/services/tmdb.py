"""Catalog provider backed by The Movie Database (TMDB)."""

from __future__ import annotations

import logging
from typing import Any

from ..errors import NotFound, ProviderUnavailable
from ..models import Item, ItemDetail, ItemType
from ..normalizer import normalize, normalize_detail
from .providers import HTTPCatalogProvider

logger = logging.getLogger(__name__)

TMDB_KINDS: tuple[ItemType, ...] = ("tv", "movie")


class TMDBProvider(HTTPCatalogProvider):
    """Serves the ``tv`` and ``movie`` kinds from the TMDB v3 API."""

    source = "tmdb"

    async def search(self, kind: ItemType, query: str) -> list[Item]:
        self._check_kind(kind)
        params = {"query": query, "include_adult": "false", "page": 1}
        data = await self._get(f"/search/{kind}", params)
        return self._normalize_results(data, kind)

    async def discover(self, kind: ItemType, page: int = 1) -> list[Item]:
        self._check_kind(kind)
        params = {"sort_by": "popularity.desc", "page": max(1, page)}
        data = await self._get(f"/discover/{kind}", params)
        return self._normalize_results(data, kind)

    async def detail(self, kind: ItemType, item_id: str) -> ItemDetail:
        self._check_kind(kind)
        if not item_id.strip().isdigit():
            raise NotFound(f"TMDB {kind} {item_id!r} not found")
        data = await self._get(f"/{kind}/{item_id.strip()}", {}, not_found_ok=True)
        if data is None:
            raise NotFound(f"TMDB {kind} {item_id!r} not found")
        return normalize_detail(data, kind)

    async def _get(
        self,
        path: str,
        params: dict[str, Any],
        *,
        not_found_ok: bool = False,
    ) -> Any:
        headers, params = self._authorise(params)
        response = await self._send("GET", path, params=params, headers=headers)
        if response.status_code == 404 and not_found_ok:
            return None
        if response.status_code >= 400:
            logger.warning(
                "TMDB request %s failed (%s): %s",
                path,
                response.status_code,
                response.text,
            )
            raise ProviderUnavailable(self.source, f"HTTP {response.status_code}")
        return self._decode(response)

    def _authorise(
        self, params: dict[str, Any]
    ) -> tuple[dict[str, str], dict[str, Any]]:
        headers = {"Accept": "application/json"}
        if self._settings.tmdb_bearer:
            headers["Authorization"] = f"Bearer {self._settings.tmdb_bearer}"
            return headers, params
        if self._settings.tmdb_api_key:
            return headers, {**params, "api_key": self._settings.tmdb_api_key}
        raise ProviderUnavailable(
            self.source, "Set TMDB_BEARER (v4) or TMDB_API_KEY (v3)"
        )

    def _normalize_results(self, data: Any, kind: ItemType) -> list[Item]:
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            logger.warning("Unexpected TMDB response structure for %s", kind)
            return []
        return [normalize(record, kind) for record in results]

    @staticmethod
    def _check_kind(kind: str) -> None:
        if kind not in TMDB_KINDS:
            raise ValueError(f"TMDB does not serve {kind!r} items")
