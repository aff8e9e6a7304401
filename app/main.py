"""Entry point for the FastAPI-powered catalog and library service."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import AsyncExitStack, asynccontextmanager, suppress
from typing import Any, Callable

import httpx
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError as PydanticValidationError

from .config import Settings, settings
from .database import Database
from .errors import (
    NotFound,
    ProviderError,
    ProviderTimeout,
    StoreUnavailable,
    Unauthenticated,
    ValidationError,
)
from .models import (
    ITEM_TYPES,
    FilterSortSpec,
    Item,
    ItemType,
    LibraryFilter,
    kinds_for_surface,
)
from .pipeline import apply, apply_library, status_counts, summarize
from .services.anilist import AniListProvider
from .services.catalog import CatalogService
from .services.library import LibrarySynchronizer
from .services.library_store import SQLLibraryStore
from .services.query_coordinator import (
    QueryCoordinator,
    QueryResult,
    browse_surface,
    global_search_surface,
)
from .services.tmdb import TMDBProvider

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

USER_ID_HEADER = "x-user-id"

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    provider_timeout = httpx.Timeout(settings.provider_timeout_seconds, connect=5.0)
    tmdb_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(base_url=str(settings.tmdb_api_url), timeout=provider_timeout)
    )
    anilist_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.anilist_api_url), timeout=provider_timeout
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    tmdb = TMDBProvider(settings, tmdb_http)
    anilist = AniListProvider(settings, anilist_http)
    if not settings.has_tmdb_credentials:
        logger.warning("TMDB credentials missing; tv and movie sources will fail")

    fastapi_app.state.settings = settings
    fastapi_app.state.catalog_service = CatalogService(
        {"anime": anilist, "tv": tmdb, "movie": tmdb}
    )
    fastapi_app.state.library = LibrarySynchronizer(
        SQLLibraryStore(database.session_factory)
    )
    fastapi_app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Search anime, TV and film catalogs and track your library",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "PUT"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_catalog_service(app: FastAPI) -> CatalogService:
    service = getattr(app.state, "catalog_service", None)
    if not isinstance(service, CatalogService):
        raise RuntimeError("Catalog service not initialised")
    return service


def get_library(app: FastAPI) -> LibrarySynchronizer:
    library = getattr(app.state, "library", None)
    if not isinstance(library, LibrarySynchronizer):
        raise RuntimeError("Library synchronizer not initialised")
    return library


def get_app_settings(app: FastAPI) -> Settings:
    configured = getattr(app.state, "settings", None)
    if isinstance(configured, Settings):
        return configured
    return settings


class SaveLibraryRequest(BaseModel):
    """Payload for saving a title's status and rating."""

    item: Item
    status: str
    rating: float | None = None


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/search")
    async def search(request: Request, query: str = "", kind: str = "all") -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        text = query.strip()
        if not text:
            raise HTTPException(status_code=400, detail="Query must not be empty")
        kinds = _surface_kinds(kind)
        spec = _filter_spec(request.query_params)
        aggregate = await service.search(kinds, text)
        items = apply(aggregate.items, spec)
        return JSONResponse(
            {
                "query": text,
                "kind": kind,
                "items": [item.model_dump(mode="json") for item in items],
                "failures": dict(aggregate.failures),
                "partial": aggregate.partial,
                "stats": _stats_payload(items),
            }
        )

    @fastapi_app.get("/api/discover/{kind}")
    async def discover(request: Request, kind: str, page: int = 1) -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        if page < 1:
            raise HTTPException(status_code=400, detail="Page must be 1 or greater")
        kinds = _surface_kinds(kind)
        spec = _filter_spec(request.query_params)
        aggregate = await service.discover(kinds, page)
        items = apply(aggregate.items, spec)
        return JSONResponse(
            {
                "kind": kind,
                "page": page,
                "items": [item.model_dump(mode="json") for item in items],
                "failures": dict(aggregate.failures),
                "partial": aggregate.partial,
                "stats": _stats_payload(items),
            }
        )

    @fastapi_app.get("/api/detail/{kind}/{item_id}")
    async def detail(kind: str, item_id: str) -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        if kind not in ITEM_TYPES:
            raise HTTPException(status_code=400, detail="Unsupported content type")
        try:
            item = await service.detail(kind, item_id)  # type: ignore[arg-type]
        except NotFound as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ProviderTimeout as exc:
            raise HTTPException(status_code=504, detail=str(exc)) from exc
        except ProviderError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return JSONResponse(item.model_dump(mode="json"))

    @fastapi_app.put("/api/library")
    async def save_library_entry(request: Request) -> JSONResponse:
        library = get_library(fastapi_app)
        user_id = _resolve_user_id(request)
        try:
            payload = SaveLibraryRequest.model_validate(await request.json())
        except (PydanticValidationError, ValueError) as exc:
            raise HTTPException(status_code=400, detail="Invalid library payload") from exc
        try:
            entry = await library.save(
                user_id, payload.item, payload.status, payload.rating
            )
        except Unauthenticated as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except StoreUnavailable as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return JSONResponse(entry.model_dump(mode="json"))

    @fastapi_app.get("/api/library")
    async def list_library(request: Request) -> JSONResponse:
        library = get_library(fastapi_app)
        user_id = _resolve_user_id(request)
        params = request.query_params
        try:
            filters = LibraryFilter(
                status=params.get("status"),
                item_type=params.get("item_type"),
                text=params.get("query", ""),
                sort_by=params.get("sort_by") or "title",
            )
        except PydanticValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.errors()) from exc
        try:
            entries = await library.list(user_id)
        except Unauthenticated as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        except StoreUnavailable as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        visible = apply_library(entries, filters)
        return JSONResponse(
            {
                "items": [entry.model_dump(mode="json") for entry in visible],
                "counts": status_counts(entries),
            }
        )

    @fastapi_app.websocket("/ws/search")
    async def search_surface(websocket: WebSocket) -> None:
        service = get_catalog_service(fastapi_app)
        app_settings = get_app_settings(fastapi_app)
        await _serve_surface(
            websocket,
            lambda listener: global_search_surface(
                service, app_settings, on_settled=listener
            ),
        )

    @fastapi_app.websocket("/ws/browse/{kind}")
    async def browse_surface_endpoint(websocket: WebSocket, kind: str) -> None:
        if kind not in ITEM_TYPES:
            await websocket.close(code=1008)
            return
        service = get_catalog_service(fastapi_app)
        app_settings = get_app_settings(fastapi_app)
        await _serve_surface(
            websocket,
            lambda listener: browse_surface(
                service, kind, app_settings, on_settled=listener  # type: ignore[arg-type]
            ),
        )


async def _serve_surface(
    websocket: WebSocket,
    build: Callable[[Callable[[QueryResult], Any]], QueryCoordinator],
) -> None:
    """Drive one query surface over a WebSocket connection.

    Each connection owns its own coordinator; results are re-filtered with the
    connection's current filter before being pushed.
    """

    await websocket.accept()
    outbox: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()
    spec_holder = [FilterSortSpec()]
    coordinator = build(lambda result: outbox.put_nowait(("results", result)))

    async def _sender() -> None:
        while True:
            message_type, body = await outbox.get()
            if message_type == "results":
                await websocket.send_json(_surface_payload(body, spec_holder[0]))
            else:
                await websocket.send_json({"type": "error", "detail": body})

    sender = asyncio.create_task(_sender())
    try:
        coordinator.start()
        while not sender.done():
            try:
                message = json.loads(await websocket.receive_text())
                _handle_surface_message(coordinator, spec_holder, message)
            except (PydanticValidationError, ValueError, TypeError) as exc:
                outbox.put_nowait(("error", str(exc)))
                continue
            if message.get("type") == "filter" and coordinator.latest is not None:
                outbox.put_nowait(("results", coordinator.latest))
    except WebSocketDisconnect:
        logger.debug("Query surface client disconnected")
    finally:
        try:
            await _stop_sender(sender)
        finally:
            await coordinator.aclose()


async def _stop_sender(sender: asyncio.Task[None]) -> None:
    sender.cancel()
    try:
        with suppress(asyncio.CancelledError):
            await sender
    except Exception as exc:
        logger.warning("Query surface push failed, closing surface: %s", exc)


def _handle_surface_message(
    coordinator: QueryCoordinator,
    spec_holder: list[FilterSortSpec],
    message: Any,
) -> None:
    if not isinstance(message, dict):
        raise ValueError("Messages must be JSON objects")
    message_type = message.get("type")
    if message_type == "input":
        coordinator.update_text(str(message.get("text") or ""))
    elif message_type == "kind":
        coordinator.select_kind(message.get("kind"))
    elif message_type == "page":
        coordinator.set_page(int(message.get("page")))
    elif message_type == "refresh":
        coordinator.refresh()
    elif message_type == "filter":
        spec_holder[0] = FilterSortSpec.model_validate(
            {
                "min_rating": message.get("min_rating", spec_holder[0].min_rating),
                "sort_by": message.get("sort_by", spec_holder[0].sort_by),
            }
        )
    else:
        raise ValueError(f"Unknown message type: {message_type!r}")


def _surface_payload(result: QueryResult, spec: FilterSortSpec) -> dict[str, Any]:
    items = apply(result.items, spec)
    payload = result.to_payload()
    payload.update(
        type="results",
        items=[item.model_dump(mode="json") for item in items],
        partial=result.partial,
        stats=_stats_payload(items),
        filter=spec.model_dump(mode="json"),
    )
    return payload


def _surface_kinds(kind: str) -> tuple[ItemType, ...]:
    try:
        return kinds_for_surface(kind)  # type: ignore[arg-type]
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _filter_spec(params: Any) -> FilterSortSpec:
    try:
        return FilterSortSpec.model_validate(
            {
                "min_rating": params.get("min_rating") or 0,
                "sort_by": params.get("sort_by") or "popularity",
            }
        )
    except PydanticValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors()) from exc


def _stats_payload(items: list[Item]) -> dict[str, Any]:
    stats = summarize(items)
    return {"total": stats.total, "average_rating": stats.average_rating}


def _resolve_user_id(request: Request) -> int | None:
    raw = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid user id header") from exc


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
