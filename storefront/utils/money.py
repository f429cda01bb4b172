# storefront/utils/money.py

from decimal import Decimal, ROUND_HALF_UP

Money = Decimal
ZERO = Decimal("0")
CENTS = Decimal("0.01")


def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))


def round_money(x) -> Money:
    return D(x).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_cents(x) -> int:
    """Smallest-unit integer amount as the payment gateway expects it."""
    return int((round_money(x) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def apply_percent_discount(amount, percent) -> Money:
    pct = min(max(D(percent), ZERO), Decimal("100"))
    discounted = round_money(D(amount) - D(amount) * pct / Decimal("100"))
    return max(ZERO, discounted)


def as_float(x):
    return float(x) if x is not None else None
