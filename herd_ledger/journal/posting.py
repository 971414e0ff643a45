"""
Monthly Depreciation Posting

Posts one period's depreciation for a company: one entry covering every
active asset not yet charged for the period, with all pending balance
adjustments folded in.

The entry, the adjustment status changes and the refreshed asset values
are written in one transaction. Posting the same period twice charges
nothing the second time.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from herd_ledger.audit.logger import AuditLogger
from herd_ledger.config.company import load_company_settings
from herd_ledger.errors import InvalidInputError
from herd_ledger.journal.backfill import LOCK_SCOPE
from herd_ledger.journal.composer import JournalComposer
from herd_ledger.models.asset import AssetStatus, BalanceAdjustment
from herd_ledger.models.journal import EntryStatus, EntryType
from herd_ledger.models.period import Period
from herd_ledger.models.results import PostingResult
from herd_ledger.services.storage import LedgerStoreInterface


logger = structlog.get_logger(__name__)


class MonthlyDepreciationPoster:
    """Posts monthly depreciation entries."""

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.store = store
        self.audit = audit_logger or AuditLogger()

    async def record_adjustment(self, adjustment: BalanceAdjustment) -> BalanceAdjustment:
        """
        Store a pending adjustment for the next depreciation posting.

        Raises:
            InvalidInputError: If the adjustment is already applied or
                               targets an account the company doesn't have
        """
        if adjustment.applied:
            raise InvalidInputError("Only pending adjustments can be recorded")
        settings = await load_company_settings(self.store, adjustment.company_id)
        code = adjustment.target_account_code
        if code is not None and settings.accounts.by_code(code) is None:
            raise InvalidInputError(f"Unknown adjustment target account {code}")
        return await self.store.save_adjustment(adjustment)

    async def post_month(
        self,
        company_id: UUID,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> PostingResult:
        """
        Post depreciation for one period.

        Raises:
            LockUnavailableError: If another journal writer for the company is running
        """
        period = Period(year=year, month=month)

        async with self.store.advisory_lock(company_id, LOCK_SCOPE):
            settings = await load_company_settings(self.store, company_id)
            composer = JournalComposer.for_company(settings)
            engine = composer.engine

            assets = await self.store.list_assets(company_id, status=AssetStatus.ACTIVE)
            charged_ids = await self._charged_asset_ids(company_id, period)

            charges = {
                asset.id: engine.period_depreciation(asset, period)
                for asset in assets
                if asset.id not in charged_ids
            }
            to_charge = [asset for asset in assets if charges.get(asset.id, 0) > 0]
            adjustments = await self.store.list_adjustments(company_id, applied=False)

            result = PostingResult(
                period=period,
                assets_skipped=len(assets) - len(to_charge),
            )
            if not to_charge and not adjustments:
                logger.info("depreciation_nothing_to_post", period=str(period))
                return result

            entry = composer.compose_depreciation(
                to_charge, period, adjustments, charges
            ).with_status(EntryStatus.POSTED)
            closing = period.next().first_day

            async with self.store.transaction():
                await self.store.save_journal_entry(entry)
                for adjustment in adjustments:
                    await self.store.mark_adjustment_applied(
                        company_id, adjustment.id, entry.id
                    )
                for asset in to_charge:
                    await self.store.update_asset(engine.refresh(asset, closing))

        total_depreciation = sum((charges[a.id] for a in to_charge), Decimal("0"))
        result = result.model_copy(update={
            "journal_entry_id": entry.id,
            "assets_charged": len(to_charge),
            "adjustments_applied": len(adjustments),
            "total_depreciation": total_depreciation,
            "total_amount": entry.total_amount,
        })

        await self.audit.log_depreciation_posted(
            company_id=company_id,
            entry_id=entry.id,
            period=str(period),
            assets_charged=len(to_charge),
            total_amount=str(entry.total_amount),
            correlation_id=correlation_id,
        )
        return result

    async def _charged_asset_ids(self, company_id: UUID, period: Period) -> set[UUID]:
        entries = await self.store.list_journal_entries(
            company_id,
            year=period.year,
            month=period.month,
            entry_type=EntryType.DEPRECIATION,
        )
        return {
            asset_id
            for entry in entries
            for asset_id in entry.asset_ids
        }
