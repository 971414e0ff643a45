"""
Tests for the two-stage asset record validator.
"""

import asyncio
from datetime import date
from uuid import uuid4

from herd_ledger.validation import AssetRecordValidator

from conftest import make_asset, make_record


TODAY = date(2024, 1, 15)


def validate(record, store=None, company_id=None):
    validator = AssetRecordValidator(store)
    return asyncio.run(validator.validate(company_id, record, today=TODAY))


class TestSchemaStage:

    def test_valid_record(self):
        result = validate(make_record())
        assert result.is_valid
        assert result.issues == []

    def test_missing_price_stops_before_semantic_stage(self):
        result = validate(make_record(purchase=None, freshen=date(2030, 1, 1)))
        assert not result.schema_valid
        assert not result.semantic_valid
        assert [i.field for i in result.issues if i.severity == "error"] == ["purchase_price"]

    def test_missing_freshen_date(self):
        result = validate(make_record(freshen=None))
        assert not result.is_valid
        assert result.issues[0].issue_type == "missing"

    def test_non_positive_price(self):
        result = validate(make_record(purchase="0"))
        assert result.error_count == 1

    def test_negative_salvage(self):
        result = validate(make_record(salvage="-1.00"))
        assert not result.schema_valid

    def test_missing_birth_date_is_a_warning(self):
        result = validate(make_record(birth_date=None))
        assert result.is_valid
        assert result.issues[0].severity == "warning"


class TestSemanticStage:

    def test_future_freshen_date(self):
        result = validate(make_record(freshen=date(2024, 2, 1)))
        assert result.schema_valid
        assert not result.semantic_valid
        assert result.issues[0].issue_type == "future_date"

    def test_freshen_before_birth(self):
        result = validate(make_record(birth_date=date(2023, 6, 1), freshen=date(2023, 1, 1)))
        assert not result.is_valid
        assert any(issue.issue_type == "inconsistent" for issue in result.issues)

    def test_salvage_not_below_price(self):
        result = validate(make_record(purchase="1000.00", salvage="1000.00"))
        assert not result.is_valid

    def test_very_old_freshen_date_is_a_warning(self):
        result = validate(make_record(birth_date=date(1999, 1, 1), freshen=date(2001, 1, 1)))
        assert result.is_valid
        assert result.issues[0].issue_type == "suspicious_date"

    def test_duplicate_tag(self, store, company_id):
        asyncio.run(store.save_asset(make_asset(company_id, tag="101")))

        duplicate = validate(make_record(tag="101"), store, company_id)
        fresh = validate(make_record(tag="102"), store, company_id)

        assert not duplicate.is_valid
        assert duplicate.issues[-1].issue_type == "duplicate"
        assert fresh.is_valid

    def test_tags_are_unique_per_company_only(self, store, company_id):
        asyncio.run(store.save_asset(make_asset(company_id, tag="101")))
        result = validate(make_record(tag="101"), store, company_id=uuid4())
        assert result.is_valid
