"""
Asset Ledger

Entry point for getting animals onto the books. Registration validates
the record, fills company defaults, and writes the asset together with
its acquisition entry, so no asset exists without one. Taking an
animal off the books is left to the disposition processor, which writes
the status change together with its disposition entry.
"""

from datetime import date
from typing import Iterable, Optional
from uuid import UUID

import structlog

from herd_ledger.audit.logger import AuditLogger, create_correlation_id
from herd_ledger.config.company import CompanySettings, load_company_settings
from herd_ledger.depreciation.engine import DepreciationEngine
from herd_ledger.depreciation.rounding import percent_of
from herd_ledger.errors import InvalidInputError, LedgerError
from herd_ledger.journal.composer import JournalComposer
from herd_ledger.models.asset import Asset, AssetImportRecord, AssetStatus
from herd_ledger.models.journal import EntryStatus, JournalEntry
from herd_ledger.models.results import ImportReport, RowResult
from herd_ledger.services.storage import (
    ExternalStoreError,
    LedgerStoreInterface,
    NotFoundError,
)
from herd_ledger.validation.validator import AssetRecordValidator


logger = structlog.get_logger(__name__)


class AssetLedger:
    """Registers, looks up and updates assets."""

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.store = store
        self.audit = audit_logger or AuditLogger()
        self.validator = AssetRecordValidator(store)

    async def register(
        self,
        company_id: UUID,
        record: AssetImportRecord,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Asset:
        """
        Validate and register one asset with its acquisition entry.

        Raises:
            InvalidInputError: If validation finds errors (messages in .issues)
            DuplicateError: If the tag number was taken concurrently
        """
        asset, _ = await self._register(company_id, record, today, correlation_id)
        return asset

    async def _register(
        self,
        company_id: UUID,
        record: AssetImportRecord,
        today: Optional[date],
        correlation_id: Optional[UUID],
    ) -> tuple[Asset, JournalEntry]:
        settings = await load_company_settings(self.store, company_id)

        validation = await self.validator.validate(company_id, record, today)
        if not validation.is_valid:
            await self.audit.log_asset_rejected(
                company_id=company_id,
                tag_number=record.tag_number,
                errors=validation.error_messages,
                correlation_id=correlation_id,
            )
            raise InvalidInputError(
                f"Asset #{record.tag_number} failed validation",
                issues=validation.error_messages,
            )

        asset = self._build_asset(company_id, record, settings)
        entry = JournalComposer.for_company(settings).compose_acquisition(asset)
        entry = entry.with_status(EntryStatus.POSTED)

        async with self.store.transaction():
            await self.store.save_asset(asset)
            await self.store.save_journal_entry(entry)

        await self.audit.log_asset_registered(
            company_id=company_id,
            asset_id=asset.id,
            tag_number=asset.tag_number,
            purchase_price=str(asset.purchase_price),
            correlation_id=correlation_id,
        )
        return asset, entry

    @staticmethod
    def _build_asset(
        company_id: UUID,
        record: AssetImportRecord,
        settings: CompanySettings,
    ) -> Asset:
        """Fill company defaults for what the record leaves out."""
        salvage = record.salvage_value
        if salvage is None:
            salvage = percent_of(record.purchase_price, settings.salvage_percent, settings.rounding)

        return Asset(
            company_id=company_id,
            tag_number=record.tag_number,
            name=record.name,
            birth_date=record.birth_date,
            freshen_date=record.freshen_date,
            purchase_price=record.purchase_price,
            salvage_value=salvage,
            depreciation_method=record.depreciation_method or settings.depreciation_method,
            acquisition_type=record.acquisition_type,
        )

    async def import_records(
        self,
        company_id: UUID,
        records: Iterable[AssetImportRecord],
        today: Optional[date] = None,
    ) -> ImportReport:
        """
        Register many records, one result per row.

        A failed row never stops the rows after it.
        """
        correlation_id = create_correlation_id()
        report = ImportReport(company_id=company_id)

        for row_number, record in enumerate(records, start=1):
            try:
                asset, entry = await self._register(company_id, record, today, correlation_id)
            except InvalidInputError as e:
                report.rows.append(RowResult(
                    row_number=row_number,
                    tag_number=record.tag_number,
                    success=False,
                    errors=e.issues or [str(e)],
                ))
                continue
            except (LedgerError, ExternalStoreError, ValueError) as e:
                logger.warning(
                    "import_row_failed",
                    row_number=row_number,
                    tag_number=record.tag_number,
                    error=str(e),
                )
                report.rows.append(RowResult(
                    row_number=row_number,
                    tag_number=record.tag_number,
                    success=False,
                    errors=[str(e) or type(e).__name__],
                ))
                continue

            report.rows.append(RowResult(
                row_number=row_number,
                tag_number=record.tag_number,
                success=True,
                asset_id=asset.id,
                journal_entry_id=entry.id,
            ))

        logger.info(
            "import_finished",
            company_id=str(company_id),
            imported=report.imported,
            failed=report.failed,
        )
        return report

    async def get(self, company_id: UUID, asset_id: UUID) -> Asset:
        """
        Raises:
            NotFoundError: If the asset doesn't exist in the company
        """
        asset = await self.store.get_asset(company_id, asset_id)
        if asset is None:
            raise NotFoundError(f"Asset {asset_id} not found")
        return asset

    async def list_active(self, company_id: UUID) -> list[Asset]:
        return await self.store.list_assets(company_id, status=AssetStatus.ACTIVE)

    async def refresh_depreciation(self, asset: Asset, as_of: Optional[date] = None) -> Asset:
        """Store current_value and total_depreciation as the engine sees them."""
        settings = await load_company_settings(self.store, asset.company_id)
        refreshed = DepreciationEngine(settings).refresh(asset, as_of or date.today())
        return await self.store.update_asset(refreshed)
