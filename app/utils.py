"""Utility helpers for coercing loosely typed provider payloads."""

from __future__ import annotations

import math
import re
from typing import Any, Mapping

YEAR_RE = re.compile(r"(19|20|21)\d{2}")


def coerce_str(value: Any) -> str | None:
    """Return a stripped string or ``None`` for blank/non-string values."""

    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def coerce_id(value: Any) -> str:
    """Return a provider identifier as a string, ``""`` when missing."""

    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return coerce_str(value) or ""


def coerce_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def coerce_int(value: Any) -> int | None:
    number = coerce_float(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def extract_year(value: Any) -> int | None:
    """Return a four digit year from an int or a date-like string."""

    if isinstance(value, int) and not isinstance(value, bool):
        return value if 1800 <= value <= 2200 else None
    text = coerce_str(value)
    if not text:
        return None
    match = YEAR_RE.search(text[:4]) or YEAR_RE.search(text)
    if not match:
        return None
    return int(match.group(0))


def build_image_url(path: Any, base_url: str) -> str | None:
    """Join a provider image path onto ``base_url`` unless already absolute."""

    text = coerce_str(path)
    if not text:
        return None
    if text.startswith("http"):
        return text
    if not text.startswith("/"):
        text = f"/{text}"
    return f"{base_url}{text}"


def as_mapping(value: Any) -> Mapping[str, Any]:
    """Return ``value`` when it is a mapping, otherwise an empty dict."""

    if isinstance(value, Mapping):
        return value
    return {}


def string_list(values: Any, *, key: str | None = None) -> tuple[str, ...]:
    """Collect non-empty strings (or ``entry[key]`` strings) from a list."""

    if not isinstance(values, (list, tuple)):
        return ()
    collected: list[str] = []
    for entry in values:
        if key is not None:
            entry = as_mapping(entry).get(key)
        text = coerce_str(entry)
        if text and text not in collected:
            collected.append(text)
    return tuple(collected)
