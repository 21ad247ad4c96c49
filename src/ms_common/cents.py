"""Integer money utilities.

All prices, totals and payment amounts are int cents. Decimal is used only
at the gateway boundary, where the wire format carries currency units.
"""

from decimal import ROUND_HALF_UP, Decimal

# Price changes of at most one cent are treated as noise and not recorded.
PRICE_TOLERANCE_CENTS = 1


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"


def prices_differ(current: int, new: int) -> bool:
    """True when two prices differ by more than the recording tolerance."""
    return abs(new - current) > PRICE_TOLERANCE_CENTS


def cents_to_amount(cents: int) -> Decimal:
    """12345 -> Decimal('123.45')."""
    return (Decimal(cents) / 100).quantize(Decimal("0.01"))


def amount_to_cents(amount: Decimal | float | int | str) -> int:
    """Currency units from the gateway back to cents, rounding half up."""
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
