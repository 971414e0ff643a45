"""
Disposition Processor

Takes an active asset out of service:

    active -> validate -> bring depreciation up to date -> compute book
    value and gain/loss -> compose -> persist + transition -> terminal

DESIGN DECISION: After processing, the accumulated depreciation derived
from the journal equals the engine figure used for the disposition.
Missing months before the disposal month are backfilled, and charges
already posted for the disposal month or later are reversed with
adjustment entries in the months they were posted. Posted entries are
never edited.

Everything is written in one transaction: backfill entries, reversals,
the disposition entry, the Disposition record and the asset status.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from herd_ledger.audit.logger import AuditLogger
from herd_ledger.config.company import load_company_settings
from herd_ledger.config.settings import get_settings
from herd_ledger.errors import InvalidInputError, InvalidStateError, LedgerError
from herd_ledger.journal.backfill import (
    LOCK_SCOPE,
    charged_periods,
    compose_missing_depreciation,
    posted_charges,
)
from herd_ledger.journal.composer import AdjustmentPair, JournalComposer
from herd_ledger.models.asset import (
    DISPOSITION_STATUS,
    Asset,
    Disposition,
    DispositionType,
)
from herd_ledger.models.journal import EntryStatus, JournalEntry
from herd_ledger.models.period import Period
from herd_ledger.models.results import DispositionResult
from herd_ledger.services.storage import (
    ExternalStoreError,
    LedgerStoreInterface,
    NotFoundError,
)


logger = structlog.get_logger(__name__)


class DispositionRequest(BaseModel):
    """Caller input for one disposition. Business rules are checked by the processor."""

    company_id: UUID
    asset_id: UUID
    disposition_date: date
    disposition_type: DispositionType
    sale_amount: Decimal = Decimal("0")
    notes: Optional[str] = Field(default=None, max_length=1000)


class DispositionProcessor:
    """Processes sales, deaths and culls."""

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.store = store
        self.audit = audit_logger or AuditLogger()

    async def process(
        self,
        request: DispositionRequest,
        correlation_id: Optional[UUID] = None,
    ) -> DispositionResult:
        """
        Process one disposition.

        Never raises for business or storage errors; returns a failed
        result instead.
        """
        try:
            result = await self._process(request)
        except (LedgerError, ExternalStoreError) as e:
            logger.warning(
                "disposition_failed",
                asset_id=str(request.asset_id),
                error_code=type(e).__name__,
                error=str(e),
            )
            await self.audit.log_disposition_failed(
                company_id=request.company_id,
                asset_id=request.asset_id,
                error_code=type(e).__name__,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return DispositionResult.failed(request.asset_id, e)

        await self.audit.log_disposition_processed(
            company_id=request.company_id,
            asset_id=request.asset_id,
            disposition_type=request.disposition_type.value,
            final_book_value=str(result.final_book_value),
            gain_loss=str(result.gain_loss),
            correlation_id=correlation_id,
        )
        return result

    async def process_many(
        self,
        requests: Iterable[DispositionRequest],
        correlation_id: Optional[UUID] = None,
    ) -> list[DispositionResult]:
        """Process dispositions one after another, pausing between them."""
        pause = get_settings().batch.pause_seconds
        results = []
        for index, request in enumerate(requests):
            if index and pause:
                await asyncio.sleep(pause)
            results.append(await self.process(request, correlation_id))
        return results

    async def _process(self, request: DispositionRequest) -> DispositionResult:
        company_id = request.company_id

        async with self.store.advisory_lock(company_id, LOCK_SCOPE):
            asset = await self._load_disposable_asset(request)

            settings = await load_company_settings(self.store, company_id)
            composer = JournalComposer.for_company(settings)
            engine = composer.engine

            disposal_period = Period.from_date(request.disposition_date)
            accumulated = engine.accumulated_depreciation(asset, request.disposition_date)
            # Non-zero only with partial months enabled
            disposal_month_charge = accumulated - engine.accumulated_depreciation(
                asset, disposal_period.first_day
            )

            backfill = await self._backfill(composer, asset, disposal_period, disposal_month_charge)
            reversals = await self._reversals(composer, asset, disposal_period, disposal_month_charge)

            final_book_value = max(asset.salvage_value, asset.purchase_price - accumulated)
            disposition = Disposition(
                company_id=company_id,
                asset_id=asset.id,
                disposition_date=request.disposition_date,
                disposition_type=request.disposition_type,
                sale_amount=request.sale_amount,
                final_book_value=final_book_value,
                gain_loss=request.sale_amount - final_book_value,
                notes=request.notes,
            )
            entry = composer.compose_disposition(asset, disposition).with_status(EntryStatus.POSTED)
            disposition.journal_entry_id = entry.id

            disposed = asset.transition_to(DISPOSITION_STATUS[request.disposition_type])
            disposed = disposed.model_copy(update={
                "current_value": final_book_value,
                "total_depreciation": accumulated,
            })

            async with self.store.transaction():
                for extra in backfill + reversals:
                    await self.store.save_journal_entry(extra)
                await self.store.save_journal_entry(entry)
                await self.store.save_disposition(disposition)
                await self.store.update_asset(disposed)

        logger.info(
            "disposition_processed",
            asset_id=str(asset.id),
            backfilled=len(backfill),
            reversed=len(reversals),
        )
        return DispositionResult(
            success=True,
            asset_id=asset.id,
            disposition_id=disposition.id,
            journal_entry_id=entry.id,
            final_book_value=final_book_value,
            gain_loss=disposition.gain_loss,
            accumulated_depreciation=accumulated,
            backfilled_entries=len(backfill),
            reversal_entries=len(reversals),
        )

    async def _load_disposable_asset(self, request: DispositionRequest) -> Asset:
        asset = await self.store.get_asset(request.company_id, request.asset_id)
        if asset is None:
            raise NotFoundError(f"Asset {request.asset_id} not found")
        if not asset.is_active:
            raise InvalidStateError(
                f"Asset #{asset.tag_number} is {asset.status.value}, not active"
            )
        existing = await self.store.get_disposition_for_asset(request.company_id, asset.id)
        if existing is not None:
            raise InvalidStateError(f"Asset #{asset.tag_number} already has a disposition")
        if request.disposition_date < asset.freshen_date:
            raise InvalidInputError(
                f"Disposition date {request.disposition_date} is before "
                f"freshen date {asset.freshen_date}"
            )
        if request.sale_amount < 0:
            raise InvalidInputError("Sale amount cannot be negative")
        return asset

    async def _backfill(
        self,
        composer: JournalComposer,
        asset: Asset,
        disposal_period: Period,
        disposal_month_charge: Decimal,
    ) -> list[JournalEntry]:
        """Depreciation entries for uncharged months up to the disposal date."""
        charged = (await charged_periods(self.store, asset.company_id)).get(asset.id, set())
        entries = compose_missing_depreciation(
            composer, asset, disposal_period.previous(), charged
        )
        if disposal_month_charge > 0 and disposal_period not in charged:
            entry = composer.compose_depreciation(
                [asset], disposal_period, charges={asset.id: disposal_month_charge}
            )
            entries.append(entry.with_status(EntryStatus.POSTED))
        return entries

    async def _reversals(
        self,
        composer: JournalComposer,
        asset: Asset,
        disposal_period: Period,
        disposal_month_charge: Decimal,
    ) -> list[JournalEntry]:
        """Adjustment entries undoing charges posted past the disposal date."""
        entries = []
        posted = await posted_charges(self.store, composer, asset, since=disposal_period)
        for period in sorted(posted):
            expected = disposal_month_charge if period == disposal_period else Decimal("0")
            excess = posted[period] - expected
            if excess <= 0:
                continue
            entry = composer.compose_adjustment(
                company_id=asset.company_id,
                period=period,
                pairs=[composer.depreciation_reversal(asset, period, excess)],
                description=f"Depreciation reversal after disposition - Cow #{asset.tag_number}",
            )
            entries.append(entry.with_status(EntryStatus.POSTED))
        return entries
