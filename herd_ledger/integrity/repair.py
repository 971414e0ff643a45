"""
Integrity Repair

Finds journal entries whose debits and credits disagree and fixes the
ones that can be rebuilt from their source records.

DESIGN DECISION: A repair never edits amounts by hand to make an entry
balance. It re-runs the composer on the CURRENT source records (asset,
disposition, folded-in adjustments) and swaps the lines atomically. If
the sources are gone, the entry is reported, not fudged. A recomposed
disposition entry also rewrites the asset's final values in the same
transaction.

Per entry:
- Exported entries: skipped (never mutated after export)
- Orphans (<= 1 line): deleted; a disposition pointing at them is unlinked
- Disposition / depreciation / acquisition entries: recomposed
- Adjustment entries: skipped (no source to recompose from)
"""

import asyncio
from collections import defaultdict
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from herd_ledger.audit.logger import AuditLogger, create_correlation_id
from herd_ledger.config.company import ChartOfAccounts, load_company_settings
from herd_ledger.config.settings import BatchSettings, get_settings
from herd_ledger.depreciation.engine import DepreciationEngine
from herd_ledger.errors import InvalidInputError, LedgerError
from herd_ledger.journal.backfill import LOCK_SCOPE
from herd_ledger.journal.composer import JournalComposer
from herd_ledger.models.asset import Asset
from herd_ledger.models.journal import EntryStatus, EntryType, JournalEntry
from herd_ledger.models.period import Period
from herd_ledger.models.results import (
    IntegrityIssue,
    IntegrityReport,
    RepairAction,
    RepairReport,
)
from herd_ledger.services.storage import ExternalStoreError, LedgerStoreInterface


logger = structlog.get_logger(__name__)


class MissingSourceError(LedgerError):
    """The records an entry was composed from no longer exist."""
    pass


def find_issues(entries: list[JournalEntry]) -> list[IntegrityIssue]:
    """Unbalanced (or lineless) entries, worst variance first."""
    issues = [
        IntegrityIssue(
            entry_id=entry.id,
            entry_date=entry.entry_date,
            entry_type=entry.entry_type,
            status=entry.status,
            description=entry.description,
            total_amount=entry.total_amount,
            line_count=len(entry.lines),
            total_debits=entry.total_debits,
            total_credits=entry.total_credits,
            variance=entry.variance,
        )
        for entry in entries
        if not entry.lines or not entry.is_balanced
    ]
    issues.sort(key=lambda issue: issue.variance, reverse=True)
    return issues


def intact_charges(entry: JournalEntry, accounts: ChartOfAccounts) -> dict[UUID, Decimal]:
    """
    Per-asset charges whose expense debit and accumulated credit still agree.

    Keeping these as posted leaves any later reversal of the same charge
    valid.
    """
    expense = accounts.depreciation_expense.code
    accumulated = accounts.accumulated_depreciation.code
    debits: dict[UUID, Decimal] = defaultdict(Decimal)
    credits: dict[UUID, Decimal] = defaultdict(Decimal)

    for line in entry.lines:
        if line.asset_id is None:
            continue
        if line.account_code == expense:
            debits[line.asset_id] += line.debit_amount
        elif line.account_code == accumulated:
            credits[line.asset_id] += line.credit_amount

    return {
        asset_id: amount
        for asset_id, amount in debits.items()
        if amount > 0 and credits.get(asset_id) == amount
    }


class IntegrityRepair:
    """Balance checks and source-driven repair for one company's journal."""

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        batch_settings: Optional[BatchSettings] = None,
    ):
        self.store = store
        self.audit = audit_logger or AuditLogger()
        self.settings = batch_settings or get_settings().batch

    # -------------------------------------------------------------------------
    # Detection
    # -------------------------------------------------------------------------

    async def check_integrity(
        self,
        company_id: UUID,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> IntegrityReport:
        period = Period(year=year, month=month)
        entries = await self.store.list_journal_entries(company_id, year=year, month=month)
        report = IntegrityReport(
            company_id=company_id,
            period=period,
            entries_checked=len(entries),
            issues=find_issues(entries),
        )

        logger.info(
            "integrity_checked",
            company_id=str(company_id),
            period=str(period),
            entries=len(entries),
            issues=len(report.issues),
        )
        for issue in report.issues:
            await self.audit.log_integrity_issue(
                company_id=company_id,
                entry_id=issue.entry_id,
                entry_type=issue.entry_type.value,
                variance=str(issue.variance),
                correlation_id=correlation_id,
            )
        return report

    # -------------------------------------------------------------------------
    # Repair
    # -------------------------------------------------------------------------

    async def repair(
        self,
        company_id: UUID,
        year: int,
        month: int,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RepairReport:
        """
        Repair every problem entry of a period.

        Raises:
            LockUnavailableError: If another journal writer for the company is running
        """
        period = Period(year=year, month=month)
        correlation_id = create_correlation_id()
        report = RepairReport(company_id=company_id, period=period)

        async with self.store.advisory_lock(company_id, LOCK_SCOPE):
            settings = await load_company_settings(self.store, company_id)
            composer = JournalComposer.for_company(settings)

            entries = await self.store.list_journal_entries(company_id, year=year, month=month)
            report.checked = len(entries)
            by_id = {entry.id: entry for entry in entries}

            for issue in find_issues(entries):
                if cancel_event is not None and cancel_event.is_set():
                    report.cancelled = True
                    break

                action = await self._repair_entry(
                    composer, by_id[issue.entry_id], issue, correlation_id
                )
                report.actions.append(action)
                await asyncio.sleep(self.settings.pause_seconds)

        logger.info(
            "integrity_repair_finished",
            company_id=str(company_id),
            period=str(period),
            deleted=report.deleted,
            repaired=report.repaired,
            skipped=report.skipped,
            failed=len(report.errors),
            cancelled=report.cancelled,
        )
        return report

    async def _repair_entry(
        self,
        composer: JournalComposer,
        entry: JournalEntry,
        issue: IntegrityIssue,
        correlation_id: UUID,
    ) -> RepairAction:
        company_id = entry.company_id

        if entry.status == EntryStatus.EXPORTED:
            return RepairAction(
                entry_id=entry.id,
                action="skipped",
                message=f"Entry {entry.id} is exported and cannot be changed",
                variance_before=issue.variance,
            )

        try:
            if issue.is_orphan:
                await self._delete_orphan(entry)
                await self.audit.log_orphan_deleted(
                    company_id=company_id,
                    entry_id=entry.id,
                    line_count=issue.line_count,
                    correlation_id=correlation_id,
                )
                return RepairAction(
                    entry_id=entry.id,
                    action="deleted",
                    message=f"Deleted orphan entry with {issue.line_count} line(s)",
                    variance_before=issue.variance,
                )

            if entry.entry_type == EntryType.ADJUSTMENT:
                return RepairAction(
                    entry_id=entry.id,
                    action="skipped",
                    message="Adjustment entries have no source to recompose from",
                    variance_before=issue.variance,
                )

            repaired = await self._recompose(composer, entry)

        except (LedgerError, ExternalStoreError) as e:
            logger.warning(
                "entry_repair_failed",
                entry_id=str(entry.id),
                entry_type=entry.entry_type.value,
                error=str(e),
            )
            await self.audit.log_repair_failed(
                company_id=company_id,
                entry_id=entry.id,
                error_code=type(e).__name__,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return RepairAction(
                entry_id=entry.id,
                action="failed",
                message=f"Entry {entry.id}: {e}",
                variance_before=issue.variance,
            )

        await self.audit.log_entry_repaired(
            company_id=company_id,
            entry_id=entry.id,
            variance_before=str(issue.variance),
            line_count=len(repaired.lines),
            correlation_id=correlation_id,
        )
        return RepairAction(
            entry_id=entry.id,
            action="repaired",
            message=f"Recomposed {entry.entry_type.value} entry with {len(repaired.lines)} lines",
            variance_before=issue.variance,
            variance_after=repaired.variance,
        )

    async def _delete_orphan(self, entry: JournalEntry) -> None:
        company_id = entry.company_id
        disposition = await self.store.get_disposition_by_journal_entry(company_id, entry.id)
        async with self.store.transaction():
            await self.store.delete_journal_entry(company_id, entry.id)
            if disposition is not None:
                await self.store.update_disposition(
                    disposition.model_copy(update={"journal_entry_id": None})
                )

    async def _recompose(self, composer: JournalComposer, entry: JournalEntry) -> JournalEntry:
        if entry.entry_type == EntryType.DISPOSITION:
            return await self._recompose_disposition(composer, entry)
        if entry.entry_type == EntryType.DEPRECIATION:
            return await self._recompose_depreciation(composer, entry)
        if entry.entry_type == EntryType.ACQUISITION:
            return await self._recompose_acquisition(composer, entry)
        raise InvalidInputError(f"Cannot recompose {entry.entry_type.value} entries")

    # -------------------------------------------------------------------------
    # Recomposition per entry type
    # -------------------------------------------------------------------------

    async def _recompose_disposition(
        self, composer: JournalComposer, entry: JournalEntry
    ) -> JournalEntry:
        company_id = entry.company_id
        disposition = await self.store.get_disposition_by_journal_entry(company_id, entry.id)
        if disposition is None:
            raise MissingSourceError("No disposition references this entry")
        asset = await self.store.get_asset(company_id, disposition.asset_id)
        if asset is None:
            raise MissingSourceError(f"Asset {disposition.asset_id} no longer exists")

        engine = composer.engine
        accumulated = engine.accumulated_depreciation(asset, disposition.disposition_date)
        final_book_value = max(asset.salvage_value, asset.purchase_price - accumulated)
        sale_amount = disposition.sale_amount or Decimal("0")
        refreshed = disposition.model_copy(update={
            "sale_amount": sale_amount,
            "final_book_value": final_book_value,
            "gain_loss": sale_amount - final_book_value,
        })
        settled = asset.model_copy(update={
            "current_value": final_book_value,
            "total_depreciation": accumulated,
        })

        recomposed = composer.compose_disposition(asset, refreshed)
        async with self.store.transaction():
            replaced = await self.store.replace_journal_lines(
                company_id, entry.id, recomposed.lines, recomposed.total_amount
            )
            await self.store.update_disposition(refreshed)
            await self.store.update_asset(settled)
        return replaced

    async def _recompose_depreciation(
        self, composer: JournalComposer, entry: JournalEntry
    ) -> JournalEntry:
        company_id = entry.company_id
        period = entry.period

        assets = await self._referenced_assets(entry)
        adjustments = [
            adjustment
            for adjustment in await self.store.list_adjustments(company_id, applied=True)
            if adjustment.applied_journal_entry_id == entry.id
        ]
        if not assets and not adjustments:
            raise MissingSourceError("Entry references no assets or adjustments")

        # Intact pairs keep their posted amount; broken ones are recomputed
        charges = intact_charges(entry, composer.accounts)
        for asset in assets:
            if asset.id not in charges:
                charges[asset.id] = await self._period_charge(composer.engine, asset, period)

        recomposed = composer.compose_depreciation(assets, period, adjustments, charges=charges)
        return await self.store.replace_journal_lines(
            company_id, entry.id, recomposed.lines, recomposed.total_amount
        )

    async def _recompose_acquisition(
        self, composer: JournalComposer, entry: JournalEntry
    ) -> JournalEntry:
        assets = await self._referenced_assets(entry)
        if len(assets) != 1:
            raise MissingSourceError(
                f"Acquisition entry references {len(assets)} assets, expected 1"
            )
        recomposed = composer.compose_acquisition(assets[0])
        return await self.store.replace_journal_lines(
            entry.company_id, entry.id, recomposed.lines, recomposed.total_amount
        )

    async def _referenced_assets(self, entry: JournalEntry) -> list[Asset]:
        assets = []
        for asset_id in entry.asset_ids:
            asset = await self.store.get_asset(entry.company_id, asset_id)
            if asset is None:
                raise MissingSourceError(f"Asset {asset_id} no longer exists")
            assets.append(asset)
        return assets

    async def _period_charge(
        self, engine: DepreciationEngine, asset: Asset, period: Period
    ) -> Decimal:
        """The charge the asset should carry for the period, disposal month included."""
        disposition = await self.store.get_disposition_for_asset(asset.company_id, asset.id)
        if disposition is None or not period.contains(disposition.disposition_date):
            return engine.period_depreciation(asset, period)
        return (
            engine.accumulated_depreciation(asset, disposition.disposition_date)
            - engine.accumulated_depreciation(asset, period.first_day)
        )

