"""
Depreciation Backfill Helpers

Shared by batch catch-up and disposition processing: find which months
an asset has already been charged for, and compose entries for the
months it has not.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Optional
from uuid import UUID

from herd_ledger.journal.composer import JournalComposer
from herd_ledger.models.asset import Asset
from herd_ledger.models.journal import EntryStatus, EntryType, JournalEntry, LineType
from herd_ledger.models.period import Period, iter_periods
from herd_ledger.services.storage import LedgerStoreInterface


# Every writer of depreciation or disposition entries takes this one lock,
# so no two of them can charge the same asset-month.
LOCK_SCOPE = "journal"


async def charged_periods(
    store: LedgerStoreInterface,
    company_id: UUID,
) -> dict[UUID, set[Period]]:
    """Periods in which each asset has a depreciation line."""
    index: dict[UUID, set[Period]] = defaultdict(set)
    entries = await store.list_journal_entries(company_id, entry_type=EntryType.DEPRECIATION)
    for entry in entries:
        for asset_id in entry.asset_ids:
            index[asset_id].add(entry.period)
    return index


def compose_missing_depreciation(
    composer: JournalComposer,
    asset: Asset,
    through: Period,
    charged: set[Period],
) -> list[JournalEntry]:
    """
    One posted depreciation entry per uncharged month, from the freshen
    month through `through`. Months with a zero charge are skipped.
    """
    entries = []
    start = Period.from_date(asset.freshen_date)
    for period in iter_periods(start, through):
        if period in charged:
            continue
        amount = composer.engine.period_depreciation(asset, period)
        if amount <= 0:
            continue
        entry = composer.compose_depreciation([asset], period, charges={asset.id: amount})
        entries.append(entry.with_status(EntryStatus.POSTED))
    return entries


async def posted_charges(
    store: LedgerStoreInterface,
    composer: JournalComposer,
    asset: Asset,
    since: Optional[Period] = None,
) -> dict[Period, Decimal]:
    """
    Net depreciation expense posted for the asset, per period.

    Counts asset-tagged expense lines in depreciation and adjustment
    entries, so a charge already reversed nets to zero.
    """
    expense_code = composer.accounts.depreciation_expense.code
    totals: dict[Period, Decimal] = defaultdict(Decimal)

    for entry_type in (EntryType.DEPRECIATION, EntryType.ADJUSTMENT):
        entries = await store.list_journal_entries(asset.company_id, entry_type=entry_type)
        for entry in entries:
            if since is not None and entry.period < since:
                continue
            for line in entry.lines:
                if line.asset_id != asset.id or line.account_code != expense_code:
                    continue
                if line.line_type == LineType.DEBIT:
                    totals[entry.period] += line.debit_amount
                else:
                    totals[entry.period] -= line.credit_amount

    return {period: amount for period, amount in totals.items() if amount != 0}
