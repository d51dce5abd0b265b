import math
from decimal import ROUND_HALF_UP, Decimal
from numbers import Real

TWO_PLACES = Decimal("0.01")


def _to_decimal(value: Real) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise TypeError(f"expected a number, got {type(value).__name__}")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"cannot format non-finite number {value!r}")
    # str() keeps the shortest repr, so 1.245 stays 1.245 instead of 1.24499...
    return Decimal(str(value))


def _rounded(value: Real) -> Decimal:
    number = _to_decimal(value)
    if number == number.to_integral_value():
        return number
    return number.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def round_answer(value: Real) -> float:
    """Round to the precision answers are displayed with (two places, half-up)."""
    return float(_rounded(value))


def format_number(value: Real) -> str:
    """
    Render a numeric answer the way it is displayed and compared everywhere.

    Values are rounded to two decimals half-up first. Whole results have no
    decimal point; anything else gets exactly two decimals
    (1.245 -> "1.25", 12.5 -> "12.50", 12.999 -> "13").
    """
    number = _rounded(value)
    if number == number.to_integral_value():
        # int() also folds -0.00 into 0
        return str(int(number))
    return str(number)


def answers_match(submitted: Real, expected: Real) -> bool:
    return format_number(submitted) == format_number(expected)
