"""
Depreciation Engine

The one place where depreciation figures are calculated. Journal
composition, disposition processing, batch catch-up, integrity repair and
drift detection all ask this engine; none of them computes its own.

DISPOSAL MONTH POLICY:
- Whole-month configuration (default): the month containing a date is not
  accrued as of that date. An asset disposed of on any day of a month
  carries depreciation through the last day of the previous month.
- Partial-month configuration: the same `months_elapsed` prorates the
  current month by day count.
Every caller that needs the accumulated figure at disposal uses
`accumulated_depreciation(asset, disposition_date)`.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

import structlog

from herd_ledger.config.company import CompanySettings
from herd_ledger.depreciation.methods import StraightLine, get_strategy
from herd_ledger.depreciation.rounding import ZERO
from herd_ledger.models.asset import Asset, DepreciationMethod
from herd_ledger.models.period import Period, iter_periods
from herd_ledger.models.results import DepreciationSnapshot, ScheduleRow


logger = structlog.get_logger(__name__)


class DepreciationEngine:
    """
    Depreciation calculator bound to one company's settings.

    All methods are pure: they read the asset and never modify it.
    """

    def __init__(self, settings: CompanySettings):
        self.settings = settings

    @property
    def rounding(self):
        return self.settings.rounding

    def useful_life_months(self, asset: Asset, override: Optional[int] = None) -> int:
        if override is not None:
            return override
        if asset.useful_life_months is not None:
            return asset.useful_life_months
        return self.settings.useful_life_months

    def months_elapsed(self, freshen_date: date, as_of: date) -> Decimal:
        """
        Months of service between the freshen date and `as_of`.

        Whole calendar months between the two months, never negative.
        With partial months enabled, the day difference is added as a
        fraction of the as-of month.
        """
        whole = Decimal(Period.from_date(freshen_date).months_until(Period.from_date(as_of)))
        if self.settings.include_partial_months:
            days = Period.from_date(as_of).days_in_month
            whole += Decimal(as_of.day - freshen_date.day) / Decimal(days)
        return max(whole, ZERO)

    def monthly_rate(self, asset: Asset, useful_life_months: Optional[int] = None) -> Decimal:
        """Straight-line monthly charge, rounded once."""
        return StraightLine.monthly_rate(
            asset.purchase_price,
            asset.salvage_value,
            self.useful_life_months(asset, useful_life_months),
            self.rounding,
        )

    def accumulated_depreciation(
        self,
        asset: Asset,
        as_of: date,
        method: Optional[DepreciationMethod] = None,
        useful_life_months: Optional[int] = None,
    ) -> Decimal:
        """Accumulated depreciation at `as_of`, capped at the depreciable base."""
        if as_of < asset.freshen_date:
            return ZERO
        strategy = get_strategy(method or asset.depreciation_method)
        return strategy.accumulated(
            asset.purchase_price,
            asset.salvage_value,
            self.months_elapsed(asset.freshen_date, as_of),
            self.useful_life_months(asset, useful_life_months),
            self.rounding,
        )

    def book_value(self, asset: Asset, as_of: date) -> Decimal:
        accumulated = self.accumulated_depreciation(asset, as_of)
        return max(asset.salvage_value, asset.purchase_price - accumulated)

    def period_depreciation(
        self,
        asset: Asset,
        period: Period,
        method: Optional[DepreciationMethod] = None,
        useful_life_months: Optional[int] = None,
    ) -> Decimal:
        """
        Charge for one period.

        Accumulated at the start of the next period minus accumulated at
        the start of this one.
        """
        end = self.accumulated_depreciation(
            asset, period.next().first_day, method, useful_life_months
        )
        start = self.accumulated_depreciation(
            asset, period.first_day, method, useful_life_months
        )
        return end - start

    def monthly_depreciation(
        self,
        asset: Asset,
        as_of: date,
        method: Optional[DepreciationMethod] = None,
        useful_life_months: Optional[int] = None,
    ) -> Decimal:
        """
        Charge for the month containing `as_of`.

        Zero before the freshen date and once the asset is fully
        depreciated.
        """
        if as_of < asset.freshen_date:
            return ZERO
        return self.period_depreciation(
            asset, Period.from_date(as_of), method, useful_life_months
        )

    def is_fully_depreciated(self, asset: Asset, as_of: date) -> bool:
        return self.accumulated_depreciation(asset, as_of) >= asset.depreciable_base

    def snapshot(self, asset: Asset, as_of: date) -> DepreciationSnapshot:
        months = self.months_elapsed(asset.freshen_date, as_of)
        life = Decimal(self.useful_life_months(asset))
        return DepreciationSnapshot(
            asset_id=asset.id,
            as_of=as_of,
            monthly_depreciation=self.monthly_depreciation(asset, as_of),
            accumulated_depreciation=self.accumulated_depreciation(asset, as_of),
            book_value=self.book_value(asset, as_of),
            months_elapsed=months,
            remaining_months=max(ZERO, life - months),
        )

    def schedule(self, asset: Asset, start: Period, end: Period) -> list[ScheduleRow]:
        """
        Per-period depreciation from `start` through `end`.

        Starts no earlier than the freshen month and stops after the
        period in which the asset becomes fully depreciated.
        """
        rows: list[ScheduleRow] = []
        first = max(start, Period.from_date(asset.freshen_date))
        for period in iter_periods(first, end):
            closing = period.next().first_day
            accumulated = self.accumulated_depreciation(asset, closing)
            rows.append(ScheduleRow(
                period=period,
                depreciation=self.period_depreciation(asset, period),
                accumulated_depreciation=accumulated,
                book_value=max(asset.salvage_value, asset.purchase_price - accumulated),
            ))
            if self.is_fully_depreciated(asset, closing):
                break
        return rows

    def refresh(self, asset: Asset, as_of: date) -> Asset:
        """
        Copy of the asset with current_value and total_depreciation
        recalculated as of `as_of`.
        """
        accumulated = self.accumulated_depreciation(asset, as_of)
        refreshed = asset.model_copy(update={
            "total_depreciation": accumulated,
            "current_value": max(asset.salvage_value, asset.purchase_price - accumulated),
        })
        logger.debug(
            "asset_depreciation_refreshed",
            asset_id=str(asset.id),
            as_of=as_of.isoformat(),
            total_depreciation=str(accumulated),
        )
        return refreshed
