"""Pydantic models describing catalog items and library entries."""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .rating import validate_rating

ItemType = Literal["anime", "tv", "movie"]
SurfaceKind = Literal["anime", "tv", "movie", "all"]
LibraryStatus = Literal["planning", "watching", "completed", "abandoned"]
SortKey = Literal["popularity", "rating", "title"]
LibrarySortKey = Literal["title", "rating", "added"]

ITEM_TYPES: tuple[ItemType, ...] = ("anime", "tv", "movie")
LIBRARY_STATUSES: tuple[LibraryStatus, ...] = (
    "planning",
    "watching",
    "completed",
    "abandoned",
)


def kinds_for_surface(kind: SurfaceKind) -> tuple[ItemType, ...]:
    """Return the provider kinds a surface of ``kind`` fans out to."""

    if kind == "all":
        return ITEM_TYPES
    if kind not in ITEM_TYPES:
        raise ValueError(f"Unknown content kind: {kind}")
    return (kind,)


class Item(BaseModel):
    """A single title returned by a catalog provider."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    item_id: str = Field(validation_alias=AliasChoices("item_id", "itemId"))
    item_type: ItemType = Field(validation_alias=AliasChoices("item_type", "itemType"))
    title: str = ""
    poster_url: str | None = Field(
        default=None, validation_alias=AliasChoices("poster_url", "posterUrl")
    )
    community_rating: float | None = Field(
        default=None,
        ge=0,
        le=10,
        validation_alias=AliasChoices("community_rating", "communityRating"),
    )
    community_rating_count: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("community_rating_count", "communityRatingCount"),
    )
    year: int | None = None
    genres: tuple[str, ...] = ()
    overview: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the item across providers."""

        return (self.item_id, self.item_type)


class ItemDetail(Item):
    """Full record fetched lazily for a single item."""

    original_title: str | None = None
    status: str | None = None


class LibraryEntry(BaseModel):
    """A user's saved status and rating for one catalog item."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int | None = None
    user_id: int
    item_id: str
    item_type: ItemType
    title: str
    poster_url: str | None = None
    status: LibraryStatus
    rating: float | None = None

    @property
    def key(self) -> tuple[int, str, str]:
        """Uniqueness key enforced by the library store."""

        return (self.user_id, self.item_id, self.item_type)

    @field_validator("rating")
    @classmethod
    def _check_rating(cls, value: float | None) -> float | None:
        return validate_rating(value)


class FilterSortSpec(BaseModel):
    """Client-side filter and ordering applied to a result set."""

    model_config = ConfigDict(frozen=True)

    min_rating: float = Field(default=0.0, ge=0, le=10)
    sort_by: SortKey = "popularity"


class LibraryFilter(BaseModel):
    """Filter and ordering applied to a user's library view."""

    model_config = ConfigDict(frozen=True)

    status: LibraryStatus | None = None
    item_type: ItemType | None = None
    text: str = ""
    sort_by: LibrarySortKey = "title"

    @field_validator("status", "item_type", mode="before")
    @classmethod
    def _all_means_unfiltered(cls, value: object) -> object:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or stripped.lower() == "all":
                return None
            return stripped.lower()
        return value

    @field_validator("text", mode="before")
    @classmethod
    def _strip_text(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return value
