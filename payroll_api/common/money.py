# payroll_api/common/money.py
"""
Monetary values.

Every amount stored or exchanged by the payroll core is a plain ``int`` in the
minor currency unit (paisa). Floats never enter the arithmetic: rates and
multipliers are handled as ``Decimal`` and the result is rounded half-up back
to a whole paisa.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from payroll_api.common.errors import ValidationFailed

Paisa = int

_HUNDRED = Decimal("100")


def to_paisa(value, field: str = "amount", default: Paisa | None = None) -> Paisa:
    """Validate a caller-supplied amount. Only non-negative integers pass."""
    if value is None:
        if default is not None:
            return default
        raise ValidationFailed(f"{field} is required")
    # bool is an int subclass; True must not become 1 paisa
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailed(f"{field} must be an integer amount in paisa")
    if value < 0:
        raise ValidationFailed(f"{field} must be >= 0")
    return value


def to_rate(value, field: str = "rate") -> Decimal:
    """Percentages / multipliers: int, str or Decimal, never bool, >= 0."""
    if value is None or isinstance(value, bool):
        raise ValidationFailed(f"{field} is required")
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationFailed(f"{field} must be numeric")
    if not d.is_finite() or d < 0:
        raise ValidationFailed(f"{field} must be >= 0")
    return d


def round_paisa(d: Decimal) -> Paisa:
    return int(d.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount: Paisa, rate) -> Paisa:
    """amount × rate / 100, e.g. percent_of(10000, 15) == 1500."""
    return round_paisa(Decimal(amount) * Decimal(str(rate)) / _HUNDRED)


def prorate(amount: Paisa, numerator, denominator) -> Paisa:
    if not denominator:
        return 0
    return round_paisa(Decimal(amount) * Decimal(str(numerator)) / Decimal(str(denominator)))
