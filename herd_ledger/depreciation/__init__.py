"""Depreciation calculation package."""

from herd_ledger.depreciation.engine import DepreciationEngine
from herd_ledger.depreciation.methods import (
    DecliningBalance,
    DepreciationStrategy,
    StraightLine,
    SumOfYears,
    get_strategy,
)
from herd_ledger.depreciation.rounding import percent_of, quantum, round_amount

__all__ = [
    "DecliningBalance",
    "DepreciationEngine",
    "DepreciationStrategy",
    "StraightLine",
    "SumOfYears",
    "get_strategy",
    "percent_of",
    "quantum",
    "round_amount",
]
