"""Half-star rating model behaviour."""

from __future__ import annotations

import pytest

from app.errors import ValidationError
from app.rating import (
    HALF_STEPS,
    pointer_position,
    quantize,
    star_fills,
    toggle,
    validate_rating,
)


def test_half_steps_cover_the_closed_range() -> None:
    assert HALF_STEPS[0] == 0.5
    assert HALF_STEPS[-1] == 10.0
    assert len(HALF_STEPS) == 20


@pytest.mark.parametrize("value", HALF_STEPS)
def test_toggle_same_value_clears(value: float) -> None:
    assert toggle(value, value) is None


@pytest.mark.parametrize("value", HALF_STEPS)
def test_toggle_other_value_replaces(value: float) -> None:
    other = 10.0 if value != 10.0 else 0.5
    assert toggle(value, other) == other
    assert toggle(None, value) == value


@pytest.mark.parametrize("fraction", [0.0, 0.1, 0.3, 0.49, 0.4999])
def test_quantize_left_half_selects_half_step(fraction: float) -> None:
    for star_index in range(10):
        assert quantize(fraction, star_index) == star_index + 0.5


@pytest.mark.parametrize("fraction", [0.5, 0.51, 0.75, 0.99, 1.0])
def test_quantize_right_half_selects_full_step(fraction: float) -> None:
    for star_index in range(10):
        assert quantize(fraction, star_index) == star_index + 1.0


def test_pointer_thirty_percent_across_fourth_star() -> None:
    """Pointer at 30% across star index 3 rates 3.5; clicking again clears it."""

    position = pointer_position(pointer_x=109.0, star_left=100.0, star_width=30.0)
    assert position == pytest.approx(0.3)
    rating = quantize(position, 3)
    assert rating == 3.5

    stored = toggle(None, rating)
    assert stored == 3.5
    assert toggle(stored, quantize(position, 3)) is None


def test_pointer_position_is_clamped_to_the_glyph() -> None:
    assert pointer_position(90.0, 100.0, 20.0) == 0.0
    assert pointer_position(150.0, 100.0, 20.0) == 1.0
    with pytest.raises(ValidationError):
        pointer_position(10.0, 0.0, 0.0)


@pytest.mark.parametrize(
    ("position", "star_index"),
    [(-0.1, 0), (1.1, 0), (0.5, -1), (0.5, 10), (float("nan"), 2)],
)
def test_quantize_rejects_out_of_range_inputs(position: float, star_index: int) -> None:
    with pytest.raises(ValidationError):
        quantize(position, star_index)


@pytest.mark.parametrize("value", [0, 0.25, -0.5, 10.5, 7.3, float("inf"), True, "7"])
def test_validate_rating_rejects_invalid_values(value: object) -> None:
    with pytest.raises(ValidationError):
        validate_rating(value)


def test_validate_rating_accepts_none_and_half_steps() -> None:
    assert validate_rating(None) is None
    assert validate_rating(7) == 7.0
    assert validate_rating(7.5) == 7.5


def test_toggle_rejects_invalid_proposals() -> None:
    with pytest.raises(ValidationError):
        toggle(None, 3.3)


def test_star_fills_render_partial_star() -> None:
    fills = star_fills(3.5)
    assert fills[:4] == (1.0, 1.0, 1.0, 0.5)
    assert set(fills[4:]) == {0.0}
    assert star_fills(None) == (0.0,) * 10
