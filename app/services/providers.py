"""Catalog provider contract and the shared HTTP plumbing behind it."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Protocol, runtime_checkable

import httpx

from ..config import Settings
from ..errors import ProviderTimeout, ProviderUnavailable
from ..models import Item, ItemDetail, ItemType

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


@runtime_checkable
class CatalogProvider(Protocol):
    """Search, browse and look up titles of one or more content kinds."""

    async def search(self, kind: ItemType, query: str) -> list[Item]: ...

    async def discover(self, kind: ItemType, page: int = 1) -> list[Item]: ...

    async def detail(self, kind: ItemType, item_id: str) -> ItemDetail: ...


class HTTPCatalogProvider:
    """Base class issuing provider requests with bounded retries.

    Transport timeouts surface as :class:`ProviderTimeout`; every other
    transport or HTTP failure as :class:`ProviderUnavailable`.
    """

    source = "provider"

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client
        self._max_retries = settings.provider_retry_limit
        self._backoff = settings.provider_retry_backoff_seconds

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        attempt = 0
        while True:
            try:
                response = await self._client.request(
                    method, url, params=params, json=json, headers=headers
                )
            except httpx.TimeoutException as exc:
                logger.warning("%s request to %s timed out", self.source, url)
                raise ProviderTimeout(self.source, "request timed out") from exc
            except httpx.HTTPError as exc:
                attempt += 1
                if attempt <= self._max_retries:
                    await self._wait_before_retry(attempt, exc.__class__.__name__, url)
                    continue
                logger.warning("%s request to %s failed: %s", self.source, url, exc)
                raise ProviderUnavailable(self.source, str(exc) or "transport error") from exc

            if response.status_code in RETRYABLE_STATUS:
                attempt += 1
                if attempt <= self._max_retries:
                    await self._wait_before_retry(
                        attempt, f"HTTP {response.status_code}", url
                    )
                    continue
                logger.warning(
                    "%s answered %s for %s: %s",
                    self.source,
                    response.status_code,
                    url,
                    response.text,
                )
                raise ProviderUnavailable(
                    self.source, f"HTTP {response.status_code}"
                )
            return response

    async def _wait_before_retry(self, attempt: int, reason: str, url: str) -> None:
        backoff = min(self._backoff * 2 ** (attempt - 1), 5.0)
        logger.info(
            "Transient error talking to %s (%s). Retrying %s in %.1fs",
            self.source,
            reason,
            url,
            backoff,
        )
        await asyncio.sleep(backoff)

    def _decode(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("Unexpected non-JSON %s response", self.source)
            raise ProviderUnavailable(self.source, "response was not JSON") from exc
