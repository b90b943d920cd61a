import math

from rental_functions.constants import CURRENCY_SYMBOL


def to_amount(value) -> float:
    """
    Coerces a stored monetary value to float.
    None, non-numeric strings, NaN and infinities become 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(amount) or math.isinf(amount):
        return 0.0
    return amount


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_currency(amount, symbol: str = CURRENCY_SYMBOL) -> str:
    return f"{symbol} {to_amount(amount):,.2f}"


def format_quantity(value) -> str:
    """Fixed-point with trailing zeros dropped: 20.5 -> '20.5', 1234567 -> '1234567'."""
    return f"{to_amount(value):.2f}".rstrip('0').rstrip('.')
