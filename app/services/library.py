"""Reconcile user status and rating edits into the personal library."""

from __future__ import annotations

import logging

from ..errors import Unauthenticated, ValidationError
from ..models import LIBRARY_STATUSES, Item, LibraryEntry, LibraryFilter
from ..pipeline import apply_library
from ..rating import Rating, toggle, validate_rating
from .library_store import LibraryStore

logger = logging.getLogger(__name__)


def build_entry(
    user_id: int, item: Item, status: str, rating: Rating
) -> LibraryEntry:
    """Return the canonical entry for ``item``, validating every field first."""

    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise ValidationError("User id must be an integer")
    if status not in LIBRARY_STATUSES:
        raise ValidationError(
            f"Status must be one of {', '.join(LIBRARY_STATUSES)}, got {status!r}"
        )
    checked_rating = validate_rating(rating)
    item_id = item.item_id.strip()
    if not item_id:
        raise ValidationError("Item id must not be empty")
    title = item.title.strip()
    if not title:
        raise ValidationError("Title must not be empty")
    return LibraryEntry(
        user_id=user_id,
        item_id=item_id,
        item_type=item.item_type,
        title=title,
        poster_url=item.poster_url,
        status=status,  # type: ignore[arg-type]
        rating=checked_rating,
    )


class LibrarySynchronizer:
    """Writes library entries through the store's upsert and reads views back."""

    def __init__(self, store: LibraryStore):
        self._store = store

    async def save(
        self,
        user_id: int | None,
        item: Item,
        status: str,
        rating: Rating,
    ) -> LibraryEntry:
        """Insert or overwrite the entry for ``(user_id, item)``.

        Issues exactly one store upsert. :class:`Unauthenticated` and
        :class:`ValidationError` are raised before any store call; store
        failures propagate unchanged.
        """

        if user_id is None:
            raise Unauthenticated("Sign in to save titles to your library")
        entry = build_entry(user_id, item, status, rating)
        stored = await self._store.upsert(entry)
        logger.info(
            "Saved %s %s for user %s as %s (rating %s)",
            stored.item_type,
            stored.item_id,
            stored.user_id,
            stored.status,
            stored.rating,
        )
        return stored

    async def rate(
        self,
        user_id: int | None,
        item: Item,
        status: str,
        *,
        current: Rating,
        proposed: float,
    ) -> LibraryEntry:
        """Save ``item`` after toggling ``proposed`` against ``current``."""

        if user_id is None:
            raise Unauthenticated("Sign in to rate titles")
        return await self.save(user_id, item, status, toggle(current, proposed))

    async def list(
        self, user_id: int | None, filters: LibraryFilter | None = None
    ) -> list[LibraryEntry]:
        """Return the user's entries filtered and ordered for display."""

        if user_id is None:
            raise Unauthenticated("Sign in to view your library")
        filters = filters or LibraryFilter()
        entries = await self._store.list(
            user_id, item_type=filters.item_type, status=filters.status
        )
        return apply_library(entries, filters)
