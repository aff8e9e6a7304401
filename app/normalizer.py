"""Map native AniList and TMDB records onto the unified item model."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .models import ITEM_TYPES, Item, ItemDetail, ItemType
from .utils import (
    as_mapping,
    build_image_url,
    coerce_float,
    coerce_id,
    coerce_int,
    coerce_str,
    extract_year,
    string_list,
)

logger = logging.getLogger(__name__)

POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"


def normalize(record: Any, item_type: ItemType) -> Item:
    """Return the best-effort :class:`Item` for a provider record.

    Missing or malformed optional fields are nulled instead of failing, so a
    caller can always tell an empty field apart from a failed provider call.
    """

    return Item(**_fields(record, item_type))


def normalize_detail(record: Any, item_type: ItemType) -> ItemDetail:
    """Return the :class:`ItemDetail` for a single-item provider record."""

    fields = _fields(record, item_type)
    data = as_mapping(record)
    if item_type == "anime":
        titles = as_mapping(data.get("title"))
        fields["original_title"] = coerce_str(titles.get("native"))
    else:
        fields["original_title"] = coerce_str(
            data.get("original_title") or data.get("original_name")
        )
    fields["status"] = coerce_str(data.get("status"))
    return ItemDetail(**fields)


def _fields(record: Any, item_type: ItemType) -> dict[str, Any]:
    if item_type not in ITEM_TYPES:
        raise ValueError(f"Unknown item type: {item_type}")
    data = as_mapping(record)
    if not data:
        logger.debug("Normalising empty %s record %r", item_type, record)
    if item_type == "anime":
        fields = _anilist_fields(data)
    else:
        fields = _tmdb_fields(data, item_type)
    fields["item_type"] = item_type
    fields["community_rating"] = _bounded_rating(fields["community_rating"])
    count = fields["community_rating_count"]
    if count is not None and count < 0:
        fields["community_rating_count"] = None
    return fields


def _anilist_fields(data: Mapping[str, Any]) -> dict[str, Any]:
    titles = as_mapping(data.get("title"))
    title = (
        coerce_str(titles.get("english"))
        or coerce_str(titles.get("romaji"))
        or coerce_str(titles.get("native"))
        or ""
    )
    cover = as_mapping(data.get("coverImage"))
    score = coerce_float(data.get("averageScore"))
    if score is None:
        score = coerce_float(data.get("meanScore"))
    year = extract_year(data.get("seasonYear"))
    if year is None:
        year = extract_year(as_mapping(data.get("startDate")).get("year"))
    return {
        "item_id": coerce_id(data.get("id")),
        "title": title,
        "poster_url": coerce_str(cover.get("large") or cover.get("medium")),
        "community_rating": score / 10 if score is not None else None,
        "community_rating_count": None,
        "year": year,
        "genres": string_list(data.get("genres")),
        "overview": coerce_str(data.get("description")),
    }


def _tmdb_fields(data: Mapping[str, Any], item_type: ItemType) -> dict[str, Any]:
    if item_type == "movie":
        title = coerce_str(data.get("title")) or coerce_str(data.get("name"))
        date_value = data.get("release_date")
    else:
        title = coerce_str(data.get("name")) or coerce_str(data.get("title"))
        date_value = data.get("first_air_date")
    return {
        "item_id": coerce_id(data.get("id")),
        "title": title or "",
        "poster_url": build_image_url(data.get("poster_path"), POSTER_BASE_URL),
        "community_rating": coerce_float(data.get("vote_average")),
        "community_rating_count": coerce_int(data.get("vote_count")),
        "year": extract_year(date_value),
        "genres": string_list(data.get("genres"), key="name"),
        "overview": coerce_str(data.get("overview")),
    }


def _bounded_rating(value: float | None) -> float | None:
    if value is None or value < 0 or value > 10:
        return None
    return value
