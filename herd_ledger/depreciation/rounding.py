"""
Rounding Policy

Amounts are rounded once, where they are calculated, and never
re-rounded downstream. Journal lines carry exactly the figures the
engine produced.
"""

from decimal import ROUND_HALF_UP, Decimal

from herd_ledger.models.asset import RoundingMode


_QUANTUM: dict[RoundingMode, Decimal] = {
    RoundingMode.CENT: Decimal("0.01"),
    RoundingMode.WHOLE_UNIT: Decimal("1"),
}

ZERO = Decimal("0")


def quantum(mode: RoundingMode) -> Decimal:
    return _QUANTUM[mode]


def round_amount(value: Decimal, mode: RoundingMode = RoundingMode.CENT) -> Decimal:
    """Round half-up to the precision of the rounding mode."""
    return Decimal(value).quantize(_QUANTUM[mode], rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percent: Decimal, mode: RoundingMode = RoundingMode.CENT) -> Decimal:
    """e.g. salvage value from a salvage percentage."""
    return round_amount(amount * percent / Decimal("100"), mode)
