"""Half-star rating arithmetic for the ten-star rating widget."""

from __future__ import annotations

import math

from .errors import ValidationError

STAR_COUNT = 10
RATING_STEP = 0.5
MAX_RATING = float(STAR_COUNT)
HALF_STEPS: tuple[float, ...] = tuple(
    step * RATING_STEP for step in range(1, int(MAX_RATING / RATING_STEP) + 1)
)

Rating = float | None


def is_half_step(value: object) -> bool:
    """Return ``True`` when ``value`` is one of ``0.5, 1.0, ..., 10.0``."""

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if not math.isfinite(value):
        return False
    if value < RATING_STEP or value > MAX_RATING:
        return False
    return float(value * 2).is_integer()


def validate_rating(value: object) -> Rating:
    """Return ``value`` as a rating or raise :class:`ValidationError`."""

    if value is None:
        return None
    if not is_half_step(value):
        raise ValidationError(
            f"Rating must be a multiple of {RATING_STEP} between "
            f"{RATING_STEP} and {MAX_RATING}, got {value!r}"
        )
    return float(value)  # type: ignore[arg-type]


def pointer_position(pointer_x: float, star_left: float, star_width: float) -> float:
    """Return where the pointer sits inside a star glyph as a fraction in [0, 1]."""

    if star_width <= 0:
        raise ValidationError("Star width must be positive")
    fraction = (pointer_x - star_left) / star_width
    return min(1.0, max(0.0, fraction))


def quantize(position: float, star_index: int) -> float:
    """Map a pointer fraction over ``star_index`` to a half or full step.

    The left half of a star selects ``star_index + 0.5`` and the right half
    selects ``star_index + 1.0``.
    """

    if isinstance(star_index, bool) or not isinstance(star_index, int):
        raise ValidationError("Star index must be an integer")
    if not 0 <= star_index < STAR_COUNT:
        raise ValidationError(f"Star index must be between 0 and {STAR_COUNT - 1}")
    if not (math.isfinite(position) and 0.0 <= position <= 1.0):
        raise ValidationError("Pointer position must be between 0 and 1")
    if position < 0.5:
        return star_index + RATING_STEP
    return star_index + 1.0


def toggle(current: Rating, proposed: float) -> Rating:
    """Return the rating after selecting ``proposed``.

    Re-selecting the stored value clears the rating.
    """

    proposed_value = validate_rating(proposed)
    if proposed_value is None:
        raise ValidationError("A proposed rating is required")
    if current is not None and proposed_value == current:
        return None
    return proposed_value


def star_fills(rating: Rating) -> tuple[float, ...]:
    """Return how much of each of the ten stars is filled for ``rating``."""

    value = rating or 0.0
    return tuple(
        min(1.0, max(0.0, value - index)) for index in range(STAR_COUNT)
    )
