"""
Main Orchestrator for Herd Ledger

This module ties together all the components and exposes one
company-scoped service for:
1. Registering and importing cows (validate -> asset + acquisition entry)
2. Monthly depreciation posting and balance adjustments
3. Dispositions (sale, death, cull)
4. Historical catch-up, integrity repair and reconciliation

DESIGN DECISION: The orchestrator owns no accounting logic. Every flow
lives in its component; the service only wires a shared store and audit
logger through them, so every mutation is audited the same way no
matter which entry point triggered it.
"""

import asyncio
from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from herd_ledger.audit import AuditLogger, create_correlation_id
from herd_ledger.batch import BatchCatchupProcessor
from herd_ledger.config import CompanySettings, load_company_settings
from herd_ledger.disposition import DispositionProcessor, DispositionRequest
from herd_ledger.errors import BatchLimitExceededError
from herd_ledger.integrity import IntegrityRepair
from herd_ledger.journal import MonthlyDepreciationPoster
from herd_ledger.ledger import AssetLedger
from herd_ledger.models.asset import Asset, AssetImportRecord, BalanceAdjustment
from herd_ledger.models.period import Period
from herd_ledger.models.results import (
    BatchProgress,
    DispositionResult,
    DriftReport,
    ImportReport,
    IntegrityReport,
    PostingResult,
    ReconciliationRow,
    RepairReport,
)
from herd_ledger.reconciliation import ReconciliationEngine
from herd_ledger.services.storage import (
    AuditStorageInterface,
    ExternalStoreError,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    LedgerStoreInterface,
)


class LedgerService:
    """
    Company-scoped entry point to the ledger.

    Usage:
        service = LedgerService(store, AuditLogger(audit_storage))
        asset = await service.register_asset(company_id, record)
        result = await service.post_monthly_depreciation(company_id, 2024, 1)
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.store = store
        self.audit = audit_logger or AuditLogger()

        self.assets = AssetLedger(store, self.audit)
        self.poster = MonthlyDepreciationPoster(store, self.audit)
        self.dispositions = DispositionProcessor(store, self.audit)
        self.catchup = BatchCatchupProcessor(store, self.audit)
        self.integrity = IntegrityRepair(store, self.audit)
        self.reconciliation = ReconciliationEngine(store, self.audit)

    # -------------------------------------------------------------------------
    # Company configuration
    # -------------------------------------------------------------------------

    async def get_company_settings(self, company_id: UUID) -> CompanySettings:
        return await load_company_settings(self.store, company_id)

    async def configure_company(self, company_id: UUID, settings: CompanySettings) -> None:
        await self.store.save_company_settings(company_id, settings)

    # -------------------------------------------------------------------------
    # Assets
    # -------------------------------------------------------------------------

    async def register_asset(
        self,
        company_id: UUID,
        record: AssetImportRecord,
        today: Optional[date] = None,
    ) -> Asset:
        return await self.assets.register(
            company_id, record, today=today, correlation_id=create_correlation_id()
        )

    async def import_assets(
        self,
        company_id: UUID,
        records: Iterable[AssetImportRecord],
        today: Optional[date] = None,
    ) -> ImportReport:
        return await self.assets.import_records(company_id, records, today=today)

    # -------------------------------------------------------------------------
    # Depreciation
    # -------------------------------------------------------------------------

    async def post_monthly_depreciation(
        self, company_id: UUID, year: int, month: int
    ) -> PostingResult:
        return await self.poster.post_month(
            company_id, year, month, correlation_id=create_correlation_id()
        )

    async def record_adjustment(self, adjustment: BalanceAdjustment) -> BalanceAdjustment:
        return await self.poster.record_adjustment(adjustment)

    # -------------------------------------------------------------------------
    # Dispositions
    # -------------------------------------------------------------------------

    async def process_disposition(self, request: DispositionRequest) -> DispositionResult:
        return await self.dispositions.process(request, correlation_id=create_correlation_id())

    # -------------------------------------------------------------------------
    # Batch operations
    # -------------------------------------------------------------------------

    async def run_catchup_batch(
        self,
        company_id: UUID,
        offset: int = 0,
        through: Optional[Period] = None,
    ) -> BatchProgress:
        return await self.catchup.run_batch(
            company_id, offset, through=through, correlation_id=create_correlation_id()
        )

    async def run_catchup(
        self,
        company_id: UUID,
        through: Optional[Period] = None,
        cancel_event: Optional[asyncio.Event] = None,
        on_progress=None,
    ) -> BatchProgress:
        try:
            return await self.catchup.run(
                company_id, through=through, cancel_event=cancel_event, on_progress=on_progress
            )
        except BatchLimitExceededError as e:
            await self.audit.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                company_id=company_id,
                details={"through": str(through) if through else None},
            )
            raise

    async def check_integrity(self, company_id: UUID, year: int, month: int) -> IntegrityReport:
        return await self.integrity.check_integrity(
            company_id, year, month, correlation_id=create_correlation_id()
        )

    async def repair_integrity(
        self,
        company_id: UUID,
        year: int,
        month: int,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RepairReport:
        return await self.integrity.repair(company_id, year, month, cancel_event=cancel_event)

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    async def reconcile_month(self, company_id: UUID, year: int, month: int) -> ReconciliationRow:
        try:
            return await self.reconciliation.reconcile_month(company_id, year, month)
        except ExternalStoreError as e:
            await self.audit.log_store_error("reconcile_month", str(e), company_id=company_id)
            raise

    async def reconcile_year(self, company_id: UUID, fiscal_year: int) -> list[ReconciliationRow]:
        try:
            return await self.reconciliation.reconcile_year(company_id, fiscal_year)
        except ExternalStoreError as e:
            await self.audit.log_store_error("reconcile_year", str(e), company_id=company_id)
            raise

    async def detect_drift(self, company_id: UUID, year: int, month: int) -> DriftReport:
        correlation_id = create_correlation_id()
        try:
            return await self.reconciliation.detect_drift(
                company_id, year, month, correlation_id=correlation_id
            )
        except ExternalStoreError as e:
            await self.audit.log_store_error(
                "detect_drift", str(e), company_id=company_id, correlation_id=correlation_id
            )
            raise


def create_app_components(
    store: Optional[LedgerStoreInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> tuple[LedgerService, LedgerStoreInterface, AuditLogger]:
    """
    Factory function to create all application components.

    Args:
        store: Ledger storage backend. Defaults to an in-memory store.
        audit_storage: Audit persistence backend. Defaults to an in-memory
                       log; pass a real backend to keep events.

    Returns:
        (service, store, audit_logger)
    """
    store = store or InMemoryLedgerStore()
    audit_logger = AuditLogger(audit_storage or InMemoryAuditStorage())
    service = LedgerService(store, audit_logger)
    return service, store, audit_logger
