from __future__ import annotations

import pytest

from attabench.duration import (
    MICROSECOND,
    MILLISECOND,
    NANOSECOND,
    PICOSECOND,
    SECOND,
    ZERO,
    Time,
    TimeSquared,
    div_round_half_up,
)


def test_div_round_half_up_rounds_halves_towards_positive_infinity() -> None:
    assert div_round_half_up(5, 2) == 3
    assert div_round_half_up(4, 2) == 2
    assert div_round_half_up(-5, 2) == -2
    assert div_round_half_up(7, -2) == -3
    assert div_round_half_up(1, 3) == 0
    with pytest.raises(ZeroDivisionError):
        div_round_half_up(1, 0)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("12.5µs", Time(12_500_000)),
        ("12.5us", Time(12_500_000)),
        ("250 ns", Time(250_000)),
        ("3", SECOND * 3),
        ("0.01", MILLISECOND * 10),
        ("1e-3s", MILLISECOND),
        ("7ps", Time(7)),
        ("-2ms", -(MILLISECOND * 2)),
    ],
)
def test_parse_units_and_bare_seconds(text: str, expected: Time) -> None:
    assert Time.parse(text) == expected


@pytest.mark.parametrize(
    "text", ["", "ms", "12 parsecs", "1.2.3s", "nan", "1e300s", "1e999999999ms"]
)
def test_parse_rejects_garbage(text: str) -> None:
    with pytest.raises(ValueError):
        Time.parse(text)


def test_from_seconds_is_exact_for_short_decimal_inputs() -> None:
    assert Time.from_seconds(0.01) == MILLISECOND * 10
    assert Time.from_seconds(1e-12) == PICOSECOND
    assert Time.from_seconds(0) == ZERO
    with pytest.raises(ValueError):
        Time.from_seconds(float("inf"))
    with pytest.raises(ValueError, match="out of range"):
        Time.from_seconds(1e300)
    assert Time.from_seconds(1e150).picoseconds == 10**162


def test_str_is_exact_and_uses_the_largest_unit() -> None:
    assert str(ZERO) == "0s"
    assert str(SECOND) == "1s"
    assert str(Time(12_500_000)) == "12.5µs"
    assert str(Time(1500)) == "1.5ns"
    assert str(Time(-2500)) == "-2.5ns"
    assert str(Time(1_000_000_000_001)) == "1.000000000001s"

    for t in (Time(1), Time(123_456_789), SECOND * 3600, -MICROSECOND):
        assert Time.parse(str(t)) == t


def test_label_keeps_three_significant_digits() -> None:
    assert Time(12_345_000).label() == "12.3µs"
    assert MILLISECOND.label() == "1ms"
    assert (SECOND * 1234).label() == "1234s"
    assert ZERO.label() == "0s"


def test_order_of_magnitude() -> None:
    assert Time.order_of_magnitude(0) == SECOND
    assert Time.order_of_magnitude(-3) == MILLISECOND
    assert Time.order_of_magnitude(-9) == NANOSECOND
    assert Time.order_of_magnitude(-12) == PICOSECOND
    assert Time.order_of_magnitude(2) == SECOND * 100


def test_arithmetic_and_ordering() -> None:
    assert MILLISECOND + MICROSECOND == Time(1_001_000_000)
    assert MILLISECOND - MILLISECOND == ZERO
    assert 3 * MILLISECOND == MILLISECOND * 3
    assert Time(5) / 2 == Time(3)
    assert MILLISECOND < SECOND
    assert max(NANOSECOND, MICROSECOND) == MICROSECOND
    with pytest.raises(TypeError):
        MILLISECOND * 1.5  # noqa: B018


def test_time_squared_square_root_rounds_to_nearest() -> None:
    assert TimeSquared(8).square_root() == Time(3)
    assert TimeSquared(6).square_root() == Time(2)
    assert MILLISECOND.squared().square_root() == MILLISECOND
    assert str(TimeSquared(42)) == "42"
    assert TimeSquared(7) / 2 == TimeSquared(4)
    with pytest.raises(ValueError):
        TimeSquared(-1).square_root()
