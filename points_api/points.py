"""
Point amount helpers.

Point amounts enter and leave the API as Decimal values with at most two
decimal places ("1.50"). Internally every balance, transfer amount and
ledger change is an integer number of hundredths of a point ("cents"), so
all arithmetic is exact and no binary floating point is involved.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENTS_PER_POINT = 100
TWO_PLACES = Decimal("0.01")


def has_at_most_two_places(amount: Decimal) -> bool:
    """True if rounding `amount` half-away-from-zero to 0.01 leaves it unchanged."""
    try:
        return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP) == amount
    except InvalidOperation:
        # NaN/Infinity, or too many digits for the context
        return False


def to_cents(amount: Decimal) -> int:
    """
    Convert a point amount to integer hundredths: Decimal("1.25") -> 125.

    The caller must have checked has_at_most_two_places() first.
    """
    cents = amount * CENTS_PER_POINT
    if cents != cents.to_integral_value():
        raise ValueError(f"{amount} has more than two decimal places")
    return int(cents)


def from_cents(cents: int) -> Decimal:
    """Convert integer hundredths back to points: 125 -> Decimal("1.25")."""
    return Decimal(cents).scaleb(-2)
