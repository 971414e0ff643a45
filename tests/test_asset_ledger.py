"""
Tests for asset registration, import and lifecycle.
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from herd_ledger.config import CompanySettings
from herd_ledger.disposition import DispositionProcessor, DispositionRequest
from herd_ledger.errors import InvalidInputError, InvalidStateError
from herd_ledger.ledger import AssetLedger
from herd_ledger.models.asset import AssetStatus, DepreciationMethod, DispositionType
from herd_ledger.models.audit import AuditEventType
from herd_ledger.models.journal import EntryStatus, EntryType
from herd_ledger.services.storage import NotFoundError

from conftest import make_record


TODAY = date(2024, 1, 15)


@pytest.fixture
def ledger(store, audit_logger):
    return AssetLedger(store, audit_logger)


class TestRegister:

    def test_register_writes_asset_and_acquisition_entry(self, ledger, store, company_id):
        asset = asyncio.run(ledger.register(company_id, make_record(), today=TODAY))

        stored = asyncio.run(store.get_asset(company_id, asset.id))
        entries = asyncio.run(store.list_journal_entries(company_id, entry_type=EntryType.ACQUISITION))

        assert stored.tag_number == "101"
        assert len(entries) == 1
        assert entries[0].status == EntryStatus.POSTED
        assert entries[0].asset_ids == [asset.id]
        assert entries[0].total_amount == Decimal("2500.00")

    def test_company_defaults_fill_gaps(self, ledger, store, company_id):
        asyncio.run(store.save_company_settings(company_id, CompanySettings(
            salvage_percent=Decimal("20"),
            depreciation_method=DepreciationMethod.SUM_OF_YEARS,
        )))
        asset = asyncio.run(ledger.register(
            company_id, make_record(purchase="2000.00", salvage=None), today=TODAY
        ))
        assert asset.salvage_value == Decimal("400.00")
        assert asset.depreciation_method == DepreciationMethod.SUM_OF_YEARS

    def test_environment_defaults_without_company_settings(self, ledger, company_id):
        asset = asyncio.run(ledger.register(
            company_id, make_record(purchase="2000.00", salvage=None), today=TODAY
        ))
        assert asset.salvage_value == Decimal("200.00")
        assert asset.depreciation_method == DepreciationMethod.STRAIGHT_LINE

    def test_invalid_record_rejected_with_issues(self, ledger, store, company_id, audit_storage):
        with pytest.raises(InvalidInputError) as exc_info:
            asyncio.run(ledger.register(company_id, make_record(purchase=None), today=TODAY))

        assert exc_info.value.issues == ["purchase_price: Purchase price is required"]
        assert asyncio.run(store.count_assets(company_id)) == 0
        events = asyncio.run(audit_storage.get_recent_events())
        assert events[0].event_type == AuditEventType.ASSET_REJECTED

    def test_duplicate_tag_rejected(self, ledger, company_id):
        asyncio.run(ledger.register(company_id, make_record(tag="101"), today=TODAY))
        with pytest.raises(InvalidInputError):
            asyncio.run(ledger.register(company_id, make_record(tag="101"), today=TODAY))

    def test_registration_is_audited(self, ledger, company_id, audit_storage):
        asset = asyncio.run(ledger.register(company_id, make_record(), today=TODAY))
        events = asyncio.run(audit_storage.get_events_by_entity("asset", asset.id))
        assert [e.event_type for e in events] == [AuditEventType.ASSET_REGISTERED]


class TestImport:

    def test_failed_rows_do_not_stop_the_import(self, ledger, store, company_id):
        records = [
            make_record(tag="101"),
            make_record(tag="102", purchase=None),
            make_record(tag="101"),
            make_record(tag="103", freshen=date(2023, 5, 1)),
        ]
        report = asyncio.run(ledger.import_records(company_id, records, today=TODAY))

        assert report.imported == 2
        assert report.failed == 2
        assert [row.success for row in report.rows] == [True, False, False, True]
        assert report.rows[1].errors == ["purchase_price: Purchase price is required"]
        assert "already registered" in report.rows[2].errors[0]
        assert report.rows[3].journal_entry_id is not None
        assert asyncio.run(store.count_assets(company_id)) == 2


class TestLifecycle:

    def test_get_unknown_asset(self, ledger, company_id):
        with pytest.raises(NotFoundError):
            asyncio.run(ledger.get(company_id, uuid4()))

    def test_refresh_depreciation(self, ledger, company_id):
        asset = asyncio.run(ledger.register(company_id, make_record(), today=TODAY))
        refreshed = asyncio.run(ledger.refresh_depreciation(asset, date(2023, 7, 1)))
        stored = asyncio.run(ledger.get(company_id, asset.id))

        assert refreshed.total_depreciation == Decimal("225.00")
        assert stored.current_value == Decimal("2275.00")

    def test_culling_goes_through_disposition(self, ledger, store, audit_logger, company_id):
        asset = asyncio.run(ledger.register(company_id, make_record(), today=TODAY))
        result = asyncio.run(DispositionProcessor(store, audit_logger).process(DispositionRequest(
            company_id=company_id,
            asset_id=asset.id,
            disposition_date=date(2023, 7, 1),
            disposition_type=DispositionType.CULLED,
        )))
        retired = asyncio.run(ledger.get(company_id, asset.id))
        disposition = asyncio.run(store.get_disposition_for_asset(company_id, asset.id))

        assert not hasattr(ledger, "transition")
        assert retired.status == AssetStatus.RETIRED
        assert disposition.journal_entry_id == result.journal_entry_id
        assert asyncio.run(ledger.list_active(company_id)) == []
        with pytest.raises(InvalidStateError):
            retired.transition_to(AssetStatus.SOLD)
