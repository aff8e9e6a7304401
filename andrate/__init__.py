"""Andrate: catalog search across AniList and TMDB plus a personal library."""

from __future__ import annotations

from app.main import app, create_app
from app.services.catalog import CatalogService
from app.services.library import LibrarySynchronizer
from app.services.query_coordinator import QueryCoordinator

__version__ = "1.0.0"

__all__ = [
    "CatalogService",
    "LibrarySynchronizer",
    "QueryCoordinator",
    "app",
    "create_app",
]
