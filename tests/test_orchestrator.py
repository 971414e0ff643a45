"""
End-to-end tests through LedgerService.
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from tenacity import wait_none

from herd_ledger.config import CompanySettings
from herd_ledger.disposition import DispositionRequest
from herd_ledger.errors import BatchLimitExceededError
from herd_ledger.models.asset import AssetStatus, DispositionType
from herd_ledger.models.audit import AuditEventType
from herd_ledger.models.period import Period
from herd_ledger.orchestrator import create_app_components
from herd_ledger.reconciliation import ReconciliationEngine
from herd_ledger.services.storage import (
    ExternalStoreError,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
)

from conftest import make_asset, make_record


TODAY = date(2024, 1, 15)


@pytest.fixture
def components(audit_storage):
    return create_app_components(audit_storage=audit_storage)


@pytest.fixture
def service(components):
    return components[0]


class TestHerdYear:
    """Register, post, sell, and check the books agree afterwards."""

    @pytest.fixture
    def herd(self, service, company_id):
        asyncio.run(service.configure_company(company_id, CompanySettings()))
        first = asyncio.run(service.register_asset(company_id, make_record(tag="101"), today=TODAY))
        second = asyncio.run(service.register_asset(
            company_id,
            make_record(tag="102", freshen=date(2023, 2, 1), purchase="3000.00", salvage="300.00"),
            today=TODAY,
        ))
        for month in range(1, 7):
            asyncio.run(service.post_monthly_depreciation(company_id, 2023, month))
        return first, second

    @pytest.fixture
    def sold(self, service, company_id, herd):
        first, _ = herd
        return asyncio.run(service.process_disposition(DispositionRequest(
            company_id=company_id,
            asset_id=first.id,
            disposition_date=date(2023, 7, 1),
            disposition_type=DispositionType.SALE,
            sale_amount=Decimal("2000.00"),
        )))

    def test_sale_after_regular_posting(self, sold):
        assert sold.success
        assert sold.gain_loss == Decimal("-275.00")
        assert sold.backfilled_entries == 0
        assert sold.reversal_entries == 0

    def test_sold_cow_no_longer_charged(self, service, company_id, sold):
        july = asyncio.run(service.post_monthly_depreciation(company_id, 2023, 7))
        assert july.assets_charged == 1
        assert july.total_depreciation == Decimal("45.00")

    def test_books_agree_every_month(self, service, company_id, sold):
        asyncio.run(service.post_monthly_depreciation(company_id, 2023, 7))

        for month in range(1, 8):
            drift = asyncio.run(service.detect_drift(company_id, 2023, month))
            integrity = asyncio.run(service.check_integrity(company_id, 2023, month))
            assert not drift.has_drift, month
            assert integrity.is_clean, month

    def test_reconciliation_after_sale(self, service, company_id, sold):
        july = asyncio.run(service.reconcile_month(company_id, 2023, 7))
        year = asyncio.run(service.reconcile_year(company_id, 2023))

        assert (july.starting_balance, july.disposals, july.ending_balance) == (2, 1, 1)
        assert july.ending_amount == Decimal("3000.00")
        assert year[6] == july

    def test_catchup_finds_nothing_missing(self, service, company_id, sold):
        progress = asyncio.run(service.run_catchup_batch(company_id, through=Period(year=2023, month=6)))
        assert progress.processed == 1
        assert progress.created == 0
        assert progress.completed

    def test_company_settings_round_trip(self, service, company_id, herd):
        settings = asyncio.run(service.get_company_settings(company_id))
        assert settings == CompanySettings()

    def test_operations_carry_their_own_correlation_id(self, service, company_id, herd, audit_storage):
        first, second = herd
        registered = asyncio.run(audit_storage.get_events_by_entity("asset", first.id))
        other = asyncio.run(audit_storage.get_events_by_entity("asset", second.id))
        assert registered[0].correlation_id != other[0].correlation_id


class TestImportAndCatchup:

    def test_import_then_catchup(self, service, components, company_id):
        _, store, _ = components
        report = asyncio.run(service.import_assets(
            company_id, [make_record(tag="101"), make_record(tag="102", purchase=None)], today=TODAY
        ))
        assert report.imported == 1

        progress = asyncio.run(service.run_catchup(company_id, through=Period(year=2023, month=3)))
        assert progress.created == 3
        assert progress.completed

        asset = asyncio.run(store.get_asset_by_tag(company_id, "101"))
        assert asset.status == AssetStatus.ACTIVE
        assert asset.total_depreciation == Decimal("112.50")


class TestFailureAuditing:

    def test_runaway_catchup_is_audited(self, monkeypatch, company_id):
        monkeypatch.setenv("HERD_BATCH_BATCH_SIZE", "1")
        monkeypatch.setenv("HERD_BATCH_MAX_ITERATIONS", "1")
        monkeypatch.setenv("HERD_BATCH_PAUSE_SECONDS", "0")
        audit_storage = InMemoryAuditStorage()
        service, store, _ = create_app_components(audit_storage=audit_storage)
        for tag in ("101", "102"):
            asyncio.run(store.save_asset(make_asset(company_id, tag=tag)))

        with pytest.raises(BatchLimitExceededError):
            asyncio.run(service.run_catchup(company_id, through=Period(year=2023, month=1)))

        events = asyncio.run(audit_storage.get_recent_events())
        assert events[0].event_type == AuditEventType.SYSTEM_ERROR
        assert events[0].error_code == "BatchLimitExceededError"

    def test_store_failure_is_audited(self, monkeypatch, company_id):
        monkeypatch.setattr(ReconciliationEngine._load_assets.retry, "wait", wait_none())
        calls = []

        class UnreachableStore(InMemoryLedgerStore):
            async def list_assets(self, *args, **kwargs):
                calls.append(args)
                raise ExternalStoreError("connection refused")

        audit_storage = InMemoryAuditStorage()
        service, _, _ = create_app_components(UnreachableStore(), audit_storage)

        with pytest.raises(ExternalStoreError):
            asyncio.run(service.reconcile_month(company_id, 2023, 1))

        assert len(calls) == 3
        events = asyncio.run(audit_storage.get_recent_events())
        assert events[0].event_type == AuditEventType.EXTERNAL_STORE_ERROR
        assert events[0].details["operation"] == "reconcile_month"
