"""
Reconciliation Engine

Two questions, answered independently:
1. Roll-forward: how many head (and how much cost) were on the books at
   the start of each month, what came in, what went out, what's left?
2. Drift: does the journal agree with the asset register for a month?

DESIGN DECISION: The rolling balance has exactly ONE implementation,
`build_reconciliation_rows`. It is a pure function over assets and
dispositions, anchored at the fiscal year start. Monthly and yearly
reports both select rows from it, so consecutive months always chain:
one month's ending balance is the next month's starting balance.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from herd_ledger.audit.logger import AuditLogger
from herd_ledger.config.company import CompanySettings, load_company_settings
from herd_ledger.config.settings import get_settings
from herd_ledger.depreciation.engine import DepreciationEngine
from herd_ledger.depreciation.rounding import ZERO
from herd_ledger.models.asset import Asset, Disposition
from herd_ledger.models.journal import EntryType, JournalEntry, LineType
from herd_ledger.models.period import Period, iter_periods
from herd_ledger.models.results import DriftFinding, DriftReport, ReconciliationRow
from herd_ledger.services.storage import ExternalStoreError, LedgerStoreInterface


logger = structlog.get_logger(__name__)

store_read_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(ExternalStoreError),
    reraise=True,
)


def fiscal_year_start(period: Period, start_month: int) -> Period:
    """First period of the fiscal year containing `period`."""
    year = period.year if period.month >= start_month else period.year - 1
    return Period(year=year, month=start_month)


def build_reconciliation_rows(
    assets: Iterable[Asset],
    dispositions: Iterable[Disposition],
    fiscal_year_start: Period,
    through: Period,
) -> list[ReconciliationRow]:
    """
    Roll head count and cost forward month by month.

    Opening balance: assets freshened on or before the day before the
    fiscal year start and not disposed of on or before that day.
    Additions are counted by freshen date; disposals by disposition date,
    valued at the asset's purchase price. A disposition whose asset is no
    longer on the register is left out of both the count and the amount,
    the same way that asset is left out of every opening balance.
    """
    assets = list(assets)
    dispositions = list(dispositions)
    by_id = {asset.id: asset for asset in assets}
    disposed_on = {d.asset_id: d.disposition_date for d in dispositions}

    opening_day = fiscal_year_start.first_day - timedelta(days=1)

    def on_books(asset: Asset, day: date) -> bool:
        disposed = disposed_on.get(asset.id)
        return asset.freshen_date <= day and (disposed is None or disposed > day)

    opening = [asset for asset in assets if on_books(asset, opening_day)]
    count = len(opening)
    amount = sum((asset.purchase_price for asset in opening), ZERO)

    rows = []
    for period in iter_periods(fiscal_year_start, through):
        added = [asset for asset in assets if period.contains(asset.freshen_date)]
        removed = [
            by_id[d.asset_id]
            for d in dispositions
            if d.asset_id in by_id and period.contains(d.disposition_date)
        ]

        added_amount = sum((asset.purchase_price for asset in added), ZERO)
        removed_amount = sum((asset.purchase_price for asset in removed), ZERO)

        row = ReconciliationRow(
            period=period,
            starting_balance=count,
            additions=len(added),
            disposals=len(removed),
            ending_balance=count + len(added) - len(removed),
            starting_amount=amount,
            addition_amount=added_amount,
            disposal_amount=removed_amount,
            ending_amount=amount + added_amount - removed_amount,
        )
        rows.append(row)
        count, amount = row.ending_balance, row.ending_amount

    return rows


class ReconciliationEngine:
    """Month-over-month reconciliation and drift detection for one store."""

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.store = store
        self.audit = audit_logger or AuditLogger()

    # -------------------------------------------------------------------------
    # Roll-forward
    # -------------------------------------------------------------------------

    async def reconcile_month(self, company_id: UUID, year: int, month: int) -> ReconciliationRow:
        period = Period(year=year, month=month)
        settings = await load_company_settings(self.store, company_id)
        start = fiscal_year_start(period, settings.fiscal_year_start_month)
        rows = await self._rows(company_id, start, period)
        return rows[-1]

    async def reconcile_year(self, company_id: UUID, fiscal_year: int) -> list[ReconciliationRow]:
        """All twelve rows of the fiscal year that starts in `fiscal_year`."""
        settings = await load_company_settings(self.store, company_id)
        start = Period(year=fiscal_year, month=settings.fiscal_year_start_month)
        return await self._rows(company_id, start, start.shift(11))

    async def _rows(self, company_id: UUID, start: Period, through: Period) -> list[ReconciliationRow]:
        assets = await self._load_assets(company_id)
        dispositions = await self._load_dispositions(company_id, through.last_day)
        return build_reconciliation_rows(assets, dispositions, start, through)

    # -------------------------------------------------------------------------
    # Drift
    # -------------------------------------------------------------------------

    async def detect_drift(
        self,
        company_id: UUID,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> DriftReport:
        """
        Compare journal totals with register totals for one month.

        additions:    acquisition debits to the livestock account vs
                      purchase prices of assets freshened in the month
        disposals:    disposition credits to the livestock account vs
                      purchase prices of assets disposed of in the month
        depreciation: asset-tagged net expense vs engine charges for the
                      assets in service during the month
        """
        period = Period(year=year, month=month)
        settings = await load_company_settings(self.store, company_id)
        tolerance = get_settings().app.balance_tolerance

        assets = await self._load_assets(company_id)
        dispositions = await self._load_dispositions(company_id, period.last_day)
        entries = await self._load_entries(company_id, period)

        ledger = self._ledger_totals(settings, assets, dispositions, period)
        journal = self._journal_totals(settings, entries)

        report = DriftReport(company_id=company_id, period=period)
        for category in ("additions", "disposals", "depreciation"):
            difference = journal[category] - ledger[category]
            report.findings.append(DriftFinding(
                period=period,
                category=category,
                ledger_amount=ledger[category],
                journal_amount=journal[category],
                difference=difference,
                flagged=abs(difference) > tolerance,
            ))

        logger.info(
            "drift_checked",
            company_id=str(company_id),
            period=str(period),
            flagged=len(report.flagged),
        )
        for finding in report.flagged:
            await self.audit.log_drift(
                company_id=company_id,
                period=str(period),
                category=finding.category,
                difference=str(finding.difference),
                correlation_id=correlation_id,
            )
        return report

    @staticmethod
    def _ledger_totals(
        settings: CompanySettings,
        assets: list[Asset],
        dispositions: list[Disposition],
        period: Period,
    ) -> dict[str, Decimal]:
        engine = DepreciationEngine(settings)
        by_asset = {d.asset_id: d for d in dispositions}
        by_id = {asset.id: asset for asset in assets}

        additions = sum(
            (a.purchase_price for a in assets if period.contains(a.freshen_date)), ZERO
        )
        disposals = sum(
            (
                by_id[d.asset_id].purchase_price
                for d in dispositions
                if period.contains(d.disposition_date) and d.asset_id in by_id
            ),
            ZERO,
        )

        depreciation = ZERO
        for asset in assets:
            disposition = by_asset.get(asset.id)
            if disposition is None:
                depreciation += engine.period_depreciation(asset, period)
                continue
            disposal_period = Period.from_date(disposition.disposition_date)
            if disposal_period > period:
                depreciation += engine.period_depreciation(asset, period)
            elif disposal_period == period:
                depreciation += (
                    engine.accumulated_depreciation(asset, disposition.disposition_date)
                    - engine.accumulated_depreciation(asset, period.first_day)
                )

        return {"additions": additions, "disposals": disposals, "depreciation": depreciation}

    @staticmethod
    def _journal_totals(
        settings: CompanySettings,
        entries: list[JournalEntry],
    ) -> dict[str, Decimal]:
        livestock = settings.accounts.livestock_asset.code
        expense = settings.accounts.depreciation_expense.code
        totals = {"additions": ZERO, "disposals": ZERO, "depreciation": ZERO}

        for entry in entries:
            for line in entry.lines:
                if entry.entry_type == EntryType.ACQUISITION and line.account_code == livestock:
                    totals["additions"] += line.debit_amount
                elif entry.entry_type == EntryType.DISPOSITION and line.account_code == livestock:
                    totals["disposals"] += line.credit_amount
                elif (
                    entry.entry_type in (EntryType.DEPRECIATION, EntryType.ADJUSTMENT)
                    and line.account_code == expense
                    and line.asset_id is not None
                ):
                    if line.line_type == LineType.DEBIT:
                        totals["depreciation"] += line.debit_amount
                    else:
                        totals["depreciation"] -= line.credit_amount
        return totals

    # -------------------------------------------------------------------------
    # Store reads
    # -------------------------------------------------------------------------

    @store_read_retry
    async def _load_assets(self, company_id: UUID) -> list[Asset]:
        return await self.store.list_assets(company_id)

    @store_read_retry
    async def _load_dispositions(self, company_id: UUID, through: date) -> list[Disposition]:
        return await self.store.list_dispositions(company_id, date_to=through)

    @store_read_retry
    async def _load_entries(self, company_id: UUID, period: Period) -> list[JournalEntry]:
        return await self.store.list_journal_entries(
            company_id, year=period.year, month=period.month
        )
