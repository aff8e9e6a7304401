"""Debounced, epoch-tagged query coordination for a single query surface."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Literal

from ..config import Settings
from ..models import Item, ItemType, SurfaceKind, kinds_for_surface
from .catalog import AggregateResult, CatalogService

logger = logging.getLogger(__name__)

QueryMode = Literal["idle", "discover", "search"]
Listener = Callable[["QueryResult"], Any]


class QueryPhase(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    QUERYING = "querying"
    SETTLED = "settled"


@dataclass(frozen=True, slots=True)
class QueryState:
    """Snapshot of the surface input tagged with the epoch that issued it."""

    kind: SurfaceKind
    text: str
    epoch: int


@dataclass(slots=True)
class QueryResult:
    """Result set committed for one epoch."""

    state: QueryState
    mode: QueryMode
    page: int = 1
    items: list[Item] = field(default_factory=list)
    failures: dict[ItemType, str] = field(default_factory=dict)

    @property
    def partial(self) -> bool:
        return bool(self.failures)

    def to_payload(self) -> dict[str, Any]:
        return {
            "epoch": self.state.epoch,
            "kind": self.state.kind,
            "text": self.state.text,
            "mode": self.mode,
            "page": self.page,
            "items": [item.model_dump(mode="json") for item in self.items],
            "failures": dict(self.failures),
        }


class QueryCoordinator:
    """Turns text and kind events into the single currently valid result set.

    Every issued query takes a fresh epoch. Results are committed only while
    their epoch is still the latest one, so a slow response to an older input
    can never overwrite the answer to a newer one. Superseded network calls
    are left to finish; their results are simply dropped.
    """

    def __init__(
        self,
        catalog: CatalogService,
        *,
        kind: SurfaceKind,
        debounce_seconds: float,
        min_query_length: int = 3,
        discover_when_idle: bool | None = None,
        on_settled: Listener | None = None,
    ):
        self._catalog = catalog
        self._kind: SurfaceKind = kind
        self._kinds = kinds_for_surface(kind)
        self._debounce_seconds = debounce_seconds
        self._min_query_length = min_query_length
        self._discover_when_idle = (
            kind != "all" if discover_when_idle is None else discover_when_idle
        )
        self._listeners: list[Listener] = [on_settled] if on_settled else []

        self._text = ""
        self._page = 1
        self._epoch = 0
        self._phase = QueryPhase.IDLE
        self._timer: asyncio.Task[None] | None = None
        self._inflight: dict[int, asyncio.Task[None]] = {}
        self._latest: QueryResult | None = None
        self._closed = False

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def phase(self) -> QueryPhase:
        return self._phase

    @property
    def latest(self) -> QueryResult | None:
        """The most recently committed result, if any."""

        return self._latest

    @property
    def kind(self) -> SurfaceKind:
        return self._kind

    @property
    def text(self) -> str:
        return self._text

    @property
    def page(self) -> int:
        return self._page

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for committed results; returns an unsubscriber."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            with suppress(ValueError):
                self._listeners.remove(listener)

        return _unsubscribe

    def start(self) -> None:
        """Issue the initial idle query (browse listing or empty result)."""

        self._ensure_open()
        self._issue_idle()

    def update_text(self, text: str) -> None:
        """Record new input and restart the debounce window."""

        self._ensure_open()
        self._text = text
        self._cancel_timer()
        if not text.strip():
            self._issue_idle()
            return
        self._phase = QueryPhase.DEBOUNCING
        self._timer = asyncio.get_running_loop().create_task(self._debounce())

    def clear(self) -> None:
        self.update_text("")

    def flush(self) -> None:
        """Fire a pending debounce timer immediately."""

        if self._timer is None:
            return
        self._cancel_timer()
        self._fire()

    def select_kind(self, kind: SurfaceKind) -> None:
        """Switch the content kind and re-issue the current query."""

        self._ensure_open()
        kinds = kinds_for_surface(kind)
        if kind == self._kind:
            return
        self._kind = kind
        self._kinds = kinds
        self._page = 1
        self._cancel_timer()
        self._fire()

    def set_page(self, page: int) -> None:
        """Move the browse listing to ``page``; searches keep their single page."""

        self._ensure_open()
        if page < 1:
            raise ValueError("Page must be 1 or greater")
        if page == self._page:
            return
        self._page = page
        if not self._is_search_text(self._text):
            self._cancel_timer()
            self._issue_idle()

    def refresh(self) -> None:
        """Re-issue the query for the current input under a new epoch."""

        self._ensure_open()
        self._cancel_timer()
        self._fire()

    async def settle(self) -> QueryResult | None:
        """Wait until no debounce timer or fan-out is outstanding."""

        while True:
            pending = {
                task
                for task in (self._timer, *self._inflight.values())
                if task is not None and not task.done()
            }
            if not pending:
                return self._latest
            await asyncio.wait(pending)

    async def aclose(self) -> None:
        """Tear the surface down, abandoning pending timers and fan-outs."""

        if self._closed:
            return
        self._closed = True
        self._cancel_timer()
        tasks = list(self._inflight.values())
        self._inflight.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._listeners.clear()

    async def _debounce(self) -> None:
        await asyncio.sleep(self._debounce_seconds)
        self._timer = None
        self._fire()

    def _fire(self) -> None:
        if self._is_search_text(self._text):
            self._issue("search")
        else:
            self._issue_idle()

    def _is_search_text(self, text: str) -> bool:
        return len(text.strip()) >= self._min_query_length

    def _issue_idle(self) -> None:
        if self._discover_when_idle:
            self._issue("discover")
            return
        self._epoch += 1
        state = QueryState(kind=self._kind, text="", epoch=self._epoch)
        self._commit(QueryResult(state=state, mode="idle", page=self._page))

    def _issue(self, mode: QueryMode) -> None:
        self._epoch += 1
        text = self._text.strip() if mode == "search" else ""
        state = QueryState(kind=self._kind, text=text, epoch=self._epoch)
        self._phase = QueryPhase.QUERYING
        logger.debug("Issuing %s for %s at epoch %s", mode, self._kind, state.epoch)
        task = asyncio.get_running_loop().create_task(
            self._run(state, mode, self._page, self._kinds)
        )
        self._inflight[state.epoch] = task
        task.add_done_callback(lambda _, epoch=state.epoch: self._inflight.pop(epoch, None))

    async def _run(
        self,
        state: QueryState,
        mode: QueryMode,
        page: int,
        kinds: tuple[ItemType, ...],
    ) -> None:
        try:
            if mode == "search":
                aggregate = await self._catalog.search(kinds, state.text)
            else:
                aggregate = await self._catalog.discover(kinds, page)
        except Exception:  # pragma: no cover - defensive logging branch
            logger.exception("Query for epoch %s failed", state.epoch)
            aggregate = AggregateResult(
                failures={kind: "UnexpectedError" for kind in kinds}
            )
        self._commit(
            QueryResult(
                state=state,
                mode=mode,
                page=page,
                items=aggregate.items,
                failures=aggregate.failures,
            )
        )

    def _commit(self, result: QueryResult) -> bool:
        if self._closed or result.state.epoch != self._epoch:
            logger.debug(
                "Dropping stale results for epoch %s (current %s)",
                result.state.epoch,
                self._epoch,
            )
            return False
        self._latest = result
        if self._timer is None:
            self._phase = (
                QueryPhase.SETTLED if result.mode == "search" else QueryPhase.IDLE
            )
        if result.failures:
            logger.info(
                "Epoch %s settled with partial results; failed sources: %s",
                result.state.epoch,
                ", ".join(sorted(result.failures)),
            )
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:  # pragma: no cover - listener safety net
                logger.exception("Query listener failed for epoch %s", result.state.epoch)
        return True

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Query surface has been closed")


def global_search_surface(
    catalog: CatalogService, settings: Settings, **kwargs: Any
) -> QueryCoordinator:
    """Return the cross-catalog search surface (anime, tv and movie)."""

    return QueryCoordinator(
        catalog,
        kind="all",
        debounce_seconds=settings.global_search_debounce_seconds,
        min_query_length=settings.min_query_length,
        **kwargs,
    )


def browse_surface(
    catalog: CatalogService, kind: ItemType, settings: Settings, **kwargs: Any
) -> QueryCoordinator:
    """Return a kind-scoped browse surface that lists discoveries when idle."""

    return QueryCoordinator(
        catalog,
        kind=kind,
        debounce_seconds=settings.browse_search_debounce_seconds,
        min_query_length=settings.min_query_length,
        **kwargs,
    )
