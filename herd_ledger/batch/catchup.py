"""
Batch Catch-up Processor

Brings the journal up to date for assets that predate it: a missing
acquisition entry, then one depreciation entry per missing month.

DESIGN DECISION: Catch-up is safe to run any number of times.
- Idempotent: existing acquisition and asset-month depreciation lines
  are checked before composing anything
- Bounded: assets are paged by BatchIterator with a hard iteration guard
- Partial-failure tolerant: an asset that cannot be composed is reported
  and skipped; a batch that cannot be written rolls back as a whole and
  is reported, and the run moves on
- Cancellable: an asyncio.Event is checked between batches
- Exclusive: one run per company at a time (advisory lock)
"""

import asyncio
import math
from datetime import date
from typing import Callable, Optional
from uuid import UUID

import structlog

from herd_ledger.audit.logger import AuditLogger, create_correlation_id
from herd_ledger.batch.iterator import BatchIterator
from herd_ledger.config.company import CompanySettings, load_company_settings
from herd_ledger.config.settings import BatchSettings, get_settings
from herd_ledger.errors import LedgerError
from herd_ledger.journal.backfill import (
    LOCK_SCOPE,
    charged_periods,
    compose_missing_depreciation,
)
from herd_ledger.journal.composer import JournalComposer
from herd_ledger.models.asset import Asset, AssetStatus
from herd_ledger.models.journal import EntryStatus, EntryType, JournalEntry
from herd_ledger.models.period import Period
from herd_ledger.models.results import BatchProgress
from herd_ledger.services.storage import ExternalStoreError, LedgerStoreInterface


logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[BatchProgress], None]


class BatchCatchupProcessor:
    """Historical acquisition and depreciation catch-up."""

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        batch_settings: Optional[BatchSettings] = None,
        composer_factory: Callable[[CompanySettings], JournalComposer] = JournalComposer.for_company,
    ):
        self.store = store
        self.audit = audit_logger or AuditLogger()
        self.settings = batch_settings or get_settings().batch
        self._composer_factory = composer_factory

    async def run_batch(
        self,
        company_id: UUID,
        offset: int = 0,
        through: Optional[Period] = None,
        correlation_id: Optional[UUID] = None,
    ) -> BatchProgress:
        """Process the one batch of active assets starting at `offset`."""
        through = through or default_through()

        async with self.store.advisory_lock(company_id, LOCK_SCOPE):
            composer = await self._composer(company_id)
            total = await self.store.count_assets(company_id, status=AssetStatus.ACTIVE)
            assets = await self._fetch_page(company_id, offset, self.settings.batch_size)

            progress = BatchProgress(
                current_batch=offset // self.settings.batch_size + 1,
                total_batches=math.ceil(total / self.settings.batch_size),
                next_offset=offset + len(assets),
            )
            if assets:
                await self._process_page(company_id, assets, composer, through, progress)
            progress.completed = progress.next_offset >= total

        await self.audit.log_catchup_batch(
            company_id=company_id,
            batch_number=progress.current_batch,
            processed=progress.processed,
            created=progress.created,
            error_count=progress.error_count,
            correlation_id=correlation_id,
        )
        return progress

    async def run(
        self,
        company_id: UUID,
        through: Optional[Period] = None,
        cancel_event: Optional[asyncio.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchProgress:
        """
        Process every active asset, batch by batch.

        Raises:
            LockUnavailableError: If another journal writer for the company is running
            BatchLimitExceededError: If paging does not terminate
        """
        through = through or default_through()
        correlation_id = create_correlation_id()

        async with self.store.advisory_lock(company_id, LOCK_SCOPE):
            composer = await self._composer(company_id)
            total = await self.store.count_assets(company_id, status=AssetStatus.ACTIVE)
            progress = BatchProgress(
                total_batches=math.ceil(total / self.settings.batch_size)
            )

            pages = BatchIterator(
                lambda offset, limit: self._fetch_page(company_id, offset, limit),
                batch_size=self.settings.batch_size,
                max_iterations=self.settings.max_iterations,
            )
            async for assets in pages:
                if cancel_event is not None and cancel_event.is_set():
                    progress.cancelled = True
                    break

                progress.current_batch += 1
                await self._process_page(company_id, assets, composer, through, progress)
                progress.next_offset = pages.offset

                await self.audit.log_catchup_batch(
                    company_id=company_id,
                    batch_number=progress.current_batch,
                    processed=progress.processed,
                    created=progress.created,
                    error_count=progress.error_count,
                    correlation_id=correlation_id,
                )
                if on_progress is not None:
                    on_progress(progress.model_copy(deep=True))

                # Yield to the loop between batches
                await asyncio.sleep(self.settings.pause_seconds)

            progress.completed = not progress.cancelled

        await self.audit.log_catchup_finished(
            company_id=company_id,
            processed=progress.processed,
            created=progress.created,
            error_count=progress.error_count,
            cancelled=progress.cancelled,
            correlation_id=correlation_id,
        )
        return progress

    async def _composer(self, company_id: UUID) -> JournalComposer:
        settings = await load_company_settings(self.store, company_id)
        return self._composer_factory(settings)

    async def _fetch_page(self, company_id: UUID, offset: int, limit: int) -> list[Asset]:
        return await self.store.list_assets(
            company_id, status=AssetStatus.ACTIVE, limit=limit, offset=offset
        )

    async def _process_page(
        self,
        company_id: UUID,
        assets: list[Asset],
        composer: JournalComposer,
        through: Period,
        progress: BatchProgress,
    ) -> None:
        """Compose everything the page is missing and write it in one transaction."""
        limit = self.settings.error_report_limit
        charged = await charged_periods(self.store, company_id)
        closing = through.next().first_day

        entries: list[JournalEntry] = []
        refreshed: list[Asset] = []
        for asset in assets:
            progress.processed += 1
            if asset.freshen_date > through.last_day:
                continue
            try:
                asset_entries = await self._missing_entries(
                    composer, asset, through, charged.get(asset.id, set())
                )
            except LedgerError as e:
                logger.warning(
                    "catchup_asset_failed",
                    asset_id=str(asset.id),
                    tag_number=asset.tag_number,
                    error=str(e),
                )
                progress.record_error(f"Cow #{asset.tag_number}: {e}", limit)
                continue
            if asset_entries:
                entries.extend(asset_entries)
                refreshed.append(composer.engine.refresh(asset, closing))

        if not entries:
            return

        try:
            async with self.store.transaction():
                for entry in entries:
                    await self.store.save_journal_entry(entry)
                for asset in refreshed:
                    await self.store.update_asset(asset)
        except ExternalStoreError as e:
            logger.error(
                "catchup_batch_rolled_back",
                batch=progress.current_batch,
                entries=len(entries),
                error=str(e),
            )
            progress.record_error(
                f"Batch {progress.current_batch} rolled back: {e}", limit
            )
            return

        progress.created += len(entries)

    async def _missing_entries(
        self,
        composer: JournalComposer,
        asset: Asset,
        through: Period,
        charged: set[Period],
    ) -> list[JournalEntry]:
        entries = []
        has_acquisition = await self.store.asset_has_entry(
            asset.company_id, asset.id, EntryType.ACQUISITION
        )
        if not has_acquisition:
            entries.append(
                composer.compose_acquisition(asset).with_status(EntryStatus.POSTED)
            )
        entries.extend(compose_missing_depreciation(composer, asset, through, charged))
        return entries


def default_through(today: Optional[date] = None) -> Period:
    """Catch-up runs through the last completed month."""
    return Period.from_date(today or date.today()).previous()
