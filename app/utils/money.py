"""Money parsing and rounding helpers shared by pricing and the backends."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

Number = Union[int, float, Decimal, str]


def to_decimal(value: Optional[Number], default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Parse a backend or form value into Decimal.

    Floats go through str() so 0.1 becomes Decimal('0.1') and not its
    binary expansion. Returns ``default`` for None, empty strings and
    anything that does not parse.
    """
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default


def money(value: Number) -> Decimal:
    """Round to cents, half up."""
    return to_decimal(value, ZERO).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Optional[Number], currency: str = '') -> str:
    """Render an amount for user-facing messages, e.g. ``INR 1,250.00``."""
    amount = to_decimal(value)
    if amount is None:
        return '-'
    rendered = f"{money(amount):,.2f}"
    return f"{currency} {rendered}" if currency else rendered
