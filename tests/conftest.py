"""
Shared fixtures for the Herd Ledger test suite.

All storage is in-memory; async code is driven with asyncio.run.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from herd_ledger.audit import AuditLogger
from herd_ledger.config import BatchSettings, CompanySettings
from herd_ledger.models.asset import Asset, AssetImportRecord
from herd_ledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStore


@pytest.fixture
def company_id():
    return uuid4()


@pytest.fixture
def store():
    return InMemoryLedgerStore()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def company_settings():
    """Five-year straight-line life, whole months, cent rounding."""
    return CompanySettings()


@pytest.fixture
def fast_batches():
    return BatchSettings(batch_size=2, pause_seconds=0, max_iterations=100, error_report_limit=5)


def make_asset(company_id, tag="101", freshen=date(2023, 1, 1),
               purchase="2500.00", salvage="250.00", **overrides):
    return Asset(
        company_id=company_id,
        tag_number=tag,
        freshen_date=freshen,
        purchase_price=Decimal(purchase),
        salvage_value=Decimal(salvage),
        **overrides,
    )


def make_record(tag="101", freshen=date(2023, 1, 1), purchase="2500.00",
                salvage="250.00", **overrides):
    return AssetImportRecord(
        tag_number=tag,
        freshen_date=freshen,
        birth_date=overrides.pop("birth_date", date(2020, 6, 1)),
        purchase_price=Decimal(purchase) if purchase is not None else None,
        salvage_value=Decimal(salvage) if salvage is not None else None,
        **overrides,
    )
