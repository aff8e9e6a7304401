"""Parallel fan-out across catalog providers with best-effort merging."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Mapping, Sequence

from ..errors import ProviderError
from ..models import Item, ItemDetail, ItemType
from .providers import CatalogProvider

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AggregateResult:
    """Merged items plus the sources that failed to contribute."""

    items: list[Item] = field(default_factory=list)
    failures: dict[ItemType, str] = field(default_factory=dict)

    @property
    def partial(self) -> bool:
        return bool(self.failures)

    def by_kind(self) -> dict[ItemType, list[Item]]:
        grouped: dict[ItemType, list[Item]] = {}
        for item in self.items:
            grouped.setdefault(item.item_type, []).append(item)
        return grouped


class CatalogService:
    """Routes queries to the provider registered for each content kind."""

    def __init__(self, providers: Mapping[ItemType, CatalogProvider]):
        self._providers = dict(providers)

    @property
    def kinds(self) -> tuple[ItemType, ...]:
        return tuple(self._providers)

    def provider_for(self, kind: ItemType) -> CatalogProvider:
        try:
            return self._providers[kind]
        except KeyError as exc:
            raise ValueError(f"No provider registered for {kind!r}") from exc

    async def search(self, kinds: Sequence[ItemType], query: str) -> AggregateResult:
        """Search every kind in ``kinds`` concurrently."""

        text = query.strip()
        if not text:
            raise ValueError("Search query must not be empty")
        return await self._fan_out(
            kinds, lambda provider, kind: provider.search(kind, text)
        )

    async def discover(self, kinds: Sequence[ItemType], page: int = 1) -> AggregateResult:
        """Return the browse listing for every kind in ``kinds`` concurrently."""

        if page < 1:
            raise ValueError("Page must be 1 or greater")
        return await self._fan_out(
            kinds, lambda provider, kind: provider.discover(kind, page)
        )

    async def detail(self, kind: ItemType, item_id: str) -> ItemDetail:
        """Fetch the full record for one item; errors propagate to the caller."""

        return await self.provider_for(kind).detail(kind, item_id)

    async def _fan_out(
        self,
        kinds: Sequence[ItemType],
        call: Callable[[CatalogProvider, ItemType], Awaitable[list[Item]]],
    ) -> AggregateResult:
        providers = [(kind, self.provider_for(kind)) for kind in kinds]
        outcomes = await asyncio.gather(
            *(self._collect(kind, provider, call) for kind, provider in providers)
        )

        result = AggregateResult()
        seen: set[tuple[str, str]] = set()
        for kind, items, error in outcomes:
            if error is not None:
                result.failures[kind] = error
                continue
            for item in items:
                if item.key in seen:
                    continue
                seen.add(item.key)
                result.items.append(item)
        return result

    async def _collect(
        self,
        kind: ItemType,
        provider: CatalogProvider,
        call: Callable[[CatalogProvider, ItemType], Awaitable[list[Item]]],
    ) -> tuple[ItemType, list[Item], str | None]:
        try:
            items = await call(provider, kind)
        except ProviderError as exc:
            logger.warning("Provider for %s failed: %s", kind, exc)
            return kind, [], exc.__class__.__name__
        except Exception:  # pragma: no cover - defensive logging branch
            logger.exception("Unexpected failure querying %s provider", kind)
            return kind, [], "UnexpectedError"
        return kind, items, None
