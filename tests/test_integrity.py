"""
Tests for journal integrity checks and source-driven repair.
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal

from herd_ledger.config import CompanySettings
from herd_ledger.disposition import DispositionProcessor, DispositionRequest
from herd_ledger.integrity import IntegrityRepair, find_issues
from herd_ledger.journal import JournalComposer, MonthlyDepreciationPoster
from herd_ledger.models.asset import AssetStatus, DispositionType
from herd_ledger.models.audit import AuditEventType
from herd_ledger.models.journal import EntryStatus, EntryType, JournalEntry, JournalLine, LineType

from conftest import make_asset


@pytest.fixture
def repairer(store, audit_logger, fast_batches):
    return IntegrityRepair(store, audit_logger, batch_settings=fast_batches)


@pytest.fixture
def composer():
    return JournalComposer.for_company(CompanySettings())


@pytest.fixture
def cow(store, company_id):
    asset = make_asset(company_id)
    asyncio.run(store.save_asset(asset))
    return asset


def with_credit(entry, index, amount):
    """Copy of the entry with one line's credit changed."""
    lines = list(entry.lines)
    lines[index] = lines[index].model_copy(update={"credit_amount": Decimal(amount)})
    return entry.model_copy(update={"lines": lines})


def get_entry(store, entry):
    return asyncio.run(store.get_journal_entry(entry.company_id, entry.id))


class TestDetection:

    def test_clean_period(self, repairer, store, company_id, cow, composer):
        asyncio.run(store.save_journal_entry(composer.compose_acquisition(cow)))
        report = asyncio.run(repairer.check_integrity(company_id, 2023, 1))

        assert report.is_clean
        assert report.entries_checked == 1

    def test_worst_variance_first(self, company_id, cow, composer):
        small = with_credit(composer.compose_acquisition(cow), 1, "2490.00")
        large = with_credit(composer.compose_acquisition(cow), 1, "2000.00")

        issues = find_issues([small, large])
        assert [issue.variance for issue in issues] == [Decimal("500.00"), Decimal("10.00")]

    def test_lineless_entry_is_an_orphan(self, company_id):
        empty = JournalEntry(
            company_id=company_id,
            entry_date=date(2023, 1, 31),
            month=1,
            year=2023,
            entry_type=EntryType.DEPRECIATION,
            description="Monthly Depreciation - 2023-01",
        )
        issues = find_issues([empty])
        assert len(issues) == 1
        assert issues[0].is_orphan

    def test_issues_are_audited(self, repairer, store, company_id, cow, composer, audit_storage):
        entry = with_credit(composer.compose_acquisition(cow), 1, "2400.00")
        asyncio.run(store.save_journal_entry(entry))

        report = asyncio.run(repairer.check_integrity(company_id, 2023, 1))

        assert report.issues[0].variance == Decimal("100.00")
        events = asyncio.run(audit_storage.get_events_by_entity("journal_entry", entry.id))
        assert events[0].event_type == AuditEventType.INTEGRITY_ISSUE_FOUND


class TestDispositionRepair:

    @pytest.fixture
    def disposed(self, store, audit_logger, cow):
        result = asyncio.run(DispositionProcessor(store, audit_logger).process(DispositionRequest(
            company_id=cow.company_id,
            asset_id=cow.id,
            disposition_date=date(2023, 7, 1),
            disposition_type=DispositionType.SALE,
            sale_amount=Decimal("2000.00"),
        )))
        return asyncio.run(store.get_journal_entry(cow.company_id, result.journal_entry_id))

    def test_unbalanced_entry_recomposed(self, repairer, store, company_id, disposed):
        asyncio.run(store.replace_journal_lines(
            company_id, disposed.id, disposed.lines[:-1], disposed.total_amount
        ))

        report = asyncio.run(repairer.repair(company_id, 2023, 7))

        assert report.repaired == 1
        assert report.actions[0].variance_before == Decimal("275.00")
        assert report.actions[0].variance_after == 0
        repaired = get_entry(store, disposed)
        assert repaired.is_balanced
        assert len(repaired.lines) == 4

    def test_asset_values_follow_recomposed_disposition(
        self, repairer, store, company_id, cow, disposed
    ):
        asyncio.run(store.replace_journal_lines(
            company_id, disposed.id, disposed.lines[:-1], disposed.total_amount
        ))
        sold = asyncio.run(store.get_asset(company_id, cow.id))
        asyncio.run(store.update_asset(sold.model_copy(update={
            "total_depreciation": Decimal("90.00"),
            "current_value": Decimal("2410.00"),
        })))

        asyncio.run(repairer.repair(company_id, 2023, 7))

        repaired = asyncio.run(store.get_asset(company_id, cow.id))
        assert repaired.status == AssetStatus.SOLD
        assert repaired.total_depreciation == Decimal("225.00")
        assert repaired.current_value == Decimal("2275.00")

    def test_orphan_deleted_and_disposition_unlinked(
        self, repairer, store, company_id, cow, disposed, audit_storage
    ):
        asyncio.run(store.replace_journal_lines(
            company_id, disposed.id, disposed.lines[2:3], disposed.total_amount
        ))

        report = asyncio.run(repairer.repair(company_id, 2023, 7))

        assert report.deleted == 1
        assert get_entry(store, disposed) is None
        disposition = asyncio.run(store.get_disposition_for_asset(company_id, cow.id))
        assert disposition.journal_entry_id is None
        events = asyncio.run(audit_storage.get_recent_events())
        assert events[0].event_type == AuditEventType.ORPHAN_DELETED


class TestDepreciationRepair:

    @pytest.fixture
    def posted(self, store, company_id, cow):
        other = make_asset(company_id, tag="102")
        asyncio.run(store.save_asset(other))
        result = asyncio.run(MonthlyDepreciationPoster(store).post_month(company_id, 2023, 3))
        return asyncio.run(store.get_journal_entry(company_id, result.journal_entry_id))

    def test_broken_pair_recomputed(self, repairer, store, company_id, posted):
        asyncio.run(store.replace_journal_lines(
            company_id, posted.id, posted.lines[:-1], posted.total_amount
        ))

        report = asyncio.run(repairer.repair(company_id, 2023, 3))

        assert report.repaired == 1
        repaired = get_entry(store, posted)
        assert repaired.is_balanced
        assert repaired.total_debits == Decimal("75.00")

    def test_intact_pair_keeps_posted_amount(self, repairer, store, company_id, cow, posted):
        lines = list(posted.lines)
        lines[0] = lines[0].model_copy(update={"debit_amount": Decimal("40.00")})
        lines[1] = lines[1].model_copy(update={"credit_amount": Decimal("40.00")})
        asyncio.run(store.replace_journal_lines(
            company_id, posted.id, lines[:-1], posted.total_amount
        ))

        asyncio.run(repairer.repair(company_id, 2023, 3))

        repaired = get_entry(store, posted)
        first_cow = [line for line in repaired.lines if line.asset_id == cow.id]
        assert repaired.is_balanced
        assert {line.amount for line in first_cow} == {Decimal("40.00")}
        assert repaired.total_debits == Decimal("77.50")


class TestSkipsAndFailures:

    def test_exported_entry_untouched(self, repairer, store, company_id, cow, composer):
        entry = with_credit(
            composer.compose_acquisition(cow).with_status(EntryStatus.EXPORTED), 1, "2400.00"
        )
        asyncio.run(store.save_journal_entry(entry))

        report = asyncio.run(repairer.repair(company_id, 2023, 1))

        assert report.skipped == 1
        assert get_entry(store, entry).variance == Decimal("100.00")

    def test_adjustment_entry_skipped(self, repairer, store, company_id):
        entry = JournalEntry(
            company_id=company_id,
            entry_date=date(2023, 1, 31),
            month=1,
            year=2023,
            entry_type=EntryType.ADJUSTMENT,
            description="Balance adjustment",
            lines=[
                JournalLine(account_code="6100", account_name="Depreciation Expense",
                            debit_amount=Decimal("50.00"), line_type=LineType.DEBIT),
                JournalLine(account_code="1500.1", account_name="Accumulated Depreciation",
                            credit_amount=Decimal("45.00"), line_type=LineType.CREDIT),
            ],
        )
        asyncio.run(store.save_journal_entry(entry))

        report = asyncio.run(repairer.repair(company_id, 2023, 1))
        assert report.skipped == 1
        assert report.repaired == 0

    def test_acquisition_recomposed(self, repairer, store, company_id, cow, composer):
        entry = with_credit(composer.compose_acquisition(cow), 1, "2400.00")
        asyncio.run(store.save_journal_entry(entry))

        report = asyncio.run(repairer.repair(company_id, 2023, 1))

        assert report.repaired == 1
        assert get_entry(store, entry).is_balanced

    def test_missing_source_reported(self, repairer, store, company_id, composer, audit_storage):
        ghost = make_asset(company_id, tag="999")
        entry = with_credit(composer.compose_acquisition(ghost), 1, "2400.00")
        asyncio.run(store.save_journal_entry(entry))

        report = asyncio.run(repairer.repair(company_id, 2023, 1))

        assert len(report.errors) == 1
        assert "no longer exists" in report.errors[0]
        assert get_entry(store, entry).variance == Decimal("100.00")
        events = asyncio.run(audit_storage.get_recent_events())
        assert events[0].event_type == AuditEventType.REPAIR_FAILED
        assert events[0].error_code == "MissingSourceError"

    def test_cancelled_before_first_entry(self, repairer, store, company_id, cow, composer):
        entry = with_credit(composer.compose_acquisition(cow), 1, "2400.00")
        asyncio.run(store.save_journal_entry(entry))

        async def run():
            cancel = asyncio.Event()
            cancel.set()
            return await repairer.repair(company_id, 2023, 1, cancel_event=cancel)

        report = asyncio.run(run())
        assert report.cancelled
        assert report.actions == []
        assert report.checked == 1
