"""
Depreciation Methods

Each method is a strategy with the same signature: given the asset's
cost figures, the months elapsed and the useful life, return the
accumulated depreciation.

DESIGN DECISION: Methods compute ACCUMULATED depreciation in closed form
rather than summing monthly charges. A period's charge is the difference
of two accumulated figures, so the sum of charges over any run of
periods always equals the accumulated figure at its end. Nothing drifts
by a cent per month.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from herd_ledger.depreciation.rounding import ZERO, round_amount
from herd_ledger.models.asset import DepreciationMethod, RoundingMode


class DepreciationStrategy(ABC):
    """Base class for a depreciation method."""

    method: DepreciationMethod

    def accumulated(
        self,
        purchase_price: Decimal,
        salvage_value: Decimal,
        months_elapsed: Decimal,
        useful_life_months: int,
        rounding: RoundingMode,
    ) -> Decimal:
        """
        Accumulated depreciation after `months_elapsed` months.

        Never negative, never above the depreciable base, and exactly the
        depreciable base once the useful life has elapsed.
        """
        base = purchase_price - salvage_value
        if months_elapsed <= 0 or base <= 0:
            return ZERO
        if months_elapsed >= useful_life_months:
            return base

        raw = self._accumulated(
            purchase_price, salvage_value, months_elapsed, useful_life_months, rounding
        )
        return min(round_amount(max(raw, ZERO), rounding), base)

    @abstractmethod
    def _accumulated(
        self,
        purchase_price: Decimal,
        salvage_value: Decimal,
        months_elapsed: Decimal,
        useful_life_months: int,
        rounding: RoundingMode,
    ) -> Decimal:
        pass


class StraightLine(DepreciationStrategy):
    """Equal charge every month: (purchase - salvage) / life."""

    method = DepreciationMethod.STRAIGHT_LINE

    @staticmethod
    def monthly_rate(
        purchase_price: Decimal,
        salvage_value: Decimal,
        useful_life_months: int,
        rounding: RoundingMode,
    ) -> Decimal:
        # Rounded once; accumulated figures are multiples of this rate
        return round_amount(
            (purchase_price - salvage_value) / Decimal(useful_life_months), rounding
        )

    def _accumulated(self, purchase_price, salvage_value, months_elapsed, useful_life_months, rounding):
        rate = self.monthly_rate(purchase_price, salvage_value, useful_life_months, rounding)
        return rate * months_elapsed


class DecliningBalance(DepreciationStrategy):
    """
    Double-declining balance.

    Monthly rate 2 / life applied to the running book value, floored at
    salvage. The remaining base is written off when the life ends.
    """

    method = DepreciationMethod.DECLINING_BALANCE

    def _accumulated(self, purchase_price, salvage_value, months_elapsed, useful_life_months, rounding):
        rate = min(Decimal(2) / Decimal(useful_life_months), Decimal(1))
        book_value = purchase_price * (Decimal(1) - rate) ** months_elapsed
        return purchase_price - max(book_value, salvage_value)


class SumOfYears(DepreciationStrategy):
    """
    Sum-of-years digits over months.

    Month k of an N-month life is charged base * (N - k + 1) / S with
    S = N(N+1)/2. The accumulated figure after n months is the closed
    form of that series.
    """

    method = DepreciationMethod.SUM_OF_YEARS

    def _accumulated(self, purchase_price, salvage_value, months_elapsed, useful_life_months, rounding):
        n = months_elapsed
        life = Decimal(useful_life_months)
        digits_total = life * (life + 1) / Decimal(2)
        digits_used = n * life - n * (n - 1) / Decimal(2)
        return (purchase_price - salvage_value) * digits_used / digits_total


STRATEGIES: dict[DepreciationMethod, DepreciationStrategy] = {
    strategy.method: strategy
    for strategy in (StraightLine(), DecliningBalance(), SumOfYears())
}


def get_strategy(method: DepreciationMethod) -> DepreciationStrategy:
    return STRATEGIES[method]
