"""
Tests for the journal composer.

Every composed entry must balance to the cent; account codes come from
the chart of accounts.
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from herd_ledger.config import ChartOfAccounts, CompanySettings
from herd_ledger.errors import InvalidInputError
from herd_ledger.journal import AdjustmentPair, JournalComposer
from herd_ledger.models.asset import (
    AcquisitionType,
    BalanceAdjustment,
    Disposition,
    DispositionType,
)
from herd_ledger.models.journal import EntryStatus, EntryType, LineType
from herd_ledger.models.period import Period

from conftest import make_asset


def lines_by_account(entry):
    """{account_code: (debits, credits)}"""
    totals = {}
    for line in entry.lines:
        debit, credit = totals.get(line.account_code, (Decimal("0"), Decimal("0")))
        totals[line.account_code] = (debit + line.debit_amount, credit + line.credit_amount)
    return totals


@pytest.fixture
def composer():
    return JournalComposer.for_company(CompanySettings())


@pytest.fixture
def asset(company_id):
    return make_asset(company_id)


class TestAcquisition:

    def test_purchased_cow_credits_cash(self, composer, asset):
        entry = composer.compose_acquisition(asset)
        accounts = lines_by_account(entry)

        assert entry.entry_type == EntryType.ACQUISITION
        assert entry.status == EntryStatus.DRAFT
        assert entry.entry_date == asset.freshen_date
        assert accounts["1500"] == (Decimal("2500.00"), Decimal("0"))
        assert accounts["1000"] == (Decimal("0"), Decimal("2500.00"))
        assert entry.total_amount == Decimal("2500.00")
        assert "Cow #101" in entry.description

    def test_raised_cow_credits_transfer_account(self, composer, company_id):
        asset = make_asset(company_id, acquisition_type=AcquisitionType.RAISED)
        accounts = lines_by_account(composer.compose_acquisition(asset))
        assert accounts["3000"] == (Decimal("0"), Decimal("2500.00"))
        assert "1000" not in accounts

    def test_codes_come_from_chart_of_accounts(self, asset):
        chart = ChartOfAccounts(cash={"code": "1010", "name": "Operating Account"})
        entry = JournalComposer(chart).compose_acquisition(asset)
        assert {line.account_code for line in entry.lines} == {"1500", "1010"}


class TestDepreciation:

    def test_one_pair_per_asset(self, composer, company_id):
        cows = [make_asset(company_id, tag="101"), make_asset(company_id, tag="102")]
        entry = composer.compose_depreciation(cows, Period(year=2023, month=2))

        assert entry.entry_type == EntryType.DEPRECIATION
        assert entry.entry_date == date(2023, 2, 28)
        assert len(entry.lines) == 4
        assert lines_by_account(entry)["6100"] == (Decimal("75.00"), Decimal("0"))
        assert {line.asset_id for line in entry.lines} == {cow.id for cow in cows}
        assert entry.description == "Monthly Depreciation - 2023-02"

    def test_single_cow_named_in_description(self, composer, asset):
        entry = composer.compose_depreciation([asset], Period(year=2023, month=2))
        assert entry.description == "Monthly Depreciation - 2023-02 - Cow #101"

    def test_adjustments_fold_into_entry(self, composer, asset, company_id):
        """A +50 and a -30 adjustment become matched pairs against expense."""
        adjustments = [
            BalanceAdjustment(
                company_id=company_id,
                prior_period_month=1,
                prior_period_year=2023,
                adjustment_amount=Decimal("50.00"),
                description="Missed charge",
            ),
            BalanceAdjustment(
                company_id=company_id,
                prior_period_month=1,
                prior_period_year=2023,
                adjustment_amount=Decimal("-30.00"),
                description="Overcharge",
            ),
        ]
        entry = composer.compose_depreciation([asset], Period(year=2023, month=2), adjustments)
        accounts = lines_by_account(entry)

        assert len(entry.lines) == 6
        assert accounts["6100"] == (Decimal("87.50"), Decimal("30.00"))
        assert accounts["1500.1"] == (Decimal("30.00"), Decimal("87.50"))
        assert entry.total_debits == entry.total_credits == Decimal("117.50")

    def test_adjustment_target_account(self, composer, asset, company_id):
        adjustment = BalanceAdjustment(
            company_id=company_id,
            prior_period_month=1,
            prior_period_year=2023,
            adjustment_amount=Decimal("12.00"),
            description="Cull correction",
            target_account_code="9003",
        )
        entry = composer.compose_depreciation([asset], Period(year=2023, month=2), [adjustment])
        assert lines_by_account(entry)["9003"] == (Decimal("0"), Decimal("12.00"))

    def test_unknown_adjustment_target_rejected(self, composer, asset, company_id):
        adjustment = BalanceAdjustment(
            company_id=company_id,
            prior_period_month=1,
            prior_period_year=2023,
            adjustment_amount=Decimal("12.00"),
            description="Bad target",
            target_account_code="4242",
        )
        with pytest.raises(InvalidInputError):
            composer.compose_depreciation([asset], Period(year=2023, month=2), [adjustment])

    def test_nothing_to_post(self, composer, asset):
        with pytest.raises(InvalidInputError):
            composer.compose_depreciation([asset], Period(year=2022, month=6))

    def test_entry_cannot_span_companies(self, composer):
        cows = [make_asset(uuid4(), tag="101"), make_asset(uuid4(), tag="102")]
        with pytest.raises(InvalidInputError):
            composer.compose_depreciation(cows, Period(year=2023, month=2))

    def test_precomputed_charges_win(self, composer, asset):
        entry = composer.compose_depreciation(
            [asset], Period(year=2023, month=2), charges={asset.id: Decimal("12.34")}
        )
        assert entry.total_amount == Decimal("12.34")

    def test_negative_charge_rejected(self, composer, asset):
        with pytest.raises(InvalidInputError):
            composer.compose_depreciation(
                [asset], Period(year=2023, month=2), charges={asset.id: Decimal("-1.00")}
            )


class TestDisposition:

    def _disposition(self, asset, kind, sale, book_value, when=date(2023, 7, 1)):
        return Disposition(
            company_id=asset.company_id,
            asset_id=asset.id,
            disposition_date=when,
            disposition_type=kind,
            sale_amount=Decimal(sale),
            final_book_value=Decimal(book_value),
            gain_loss=Decimal(sale) - Decimal(book_value),
        )

    def test_sale_at_a_loss(self, composer, asset):
        """Sold on 2023-07-01 for 2000 with a book value of 2275."""
        entry = composer.compose_disposition(
            asset, self._disposition(asset, DispositionType.SALE, "2000.00", "2275.00")
        )
        accounts = lines_by_account(entry)

        assert accounts["1000"] == (Decimal("2000.00"), Decimal("0"))
        assert accounts["1500.1"] == (Decimal("225.00"), Decimal("0"))
        assert accounts["9002"] == (Decimal("275.00"), Decimal("0"))
        assert accounts["1500"] == (Decimal("0"), Decimal("2500.00"))
        assert entry.total_debits == entry.total_credits == Decimal("2500.00")

    def test_sale_at_a_gain(self, composer, asset):
        entry = composer.compose_disposition(
            asset, self._disposition(asset, DispositionType.SALE, "2500.00", "2275.00")
        )
        accounts = lines_by_account(entry)
        assert accounts["8000"] == (Decimal("0"), Decimal("225.00"))
        assert entry.is_balanced

    def test_death_without_proceeds(self, composer, asset):
        entry = composer.compose_disposition(
            asset, self._disposition(asset, DispositionType.DEATH, "0", "2275.00")
        )
        accounts = lines_by_account(entry)
        assert "1000" not in accounts
        assert accounts["9001"] == (Decimal("2275.00"), Decimal("0"))

    def test_cull_uses_cull_loss_account(self, composer, asset):
        entry = composer.compose_disposition(
            asset, self._disposition(asset, DispositionType.CULLED, "800.00", "2275.00")
        )
        assert lines_by_account(entry)["9003"] == (Decimal("1475.00"), Decimal("0"))

    def test_disposition_for_other_asset_rejected(self, composer, asset, company_id):
        other = make_asset(company_id, tag="999")
        with pytest.raises(InvalidInputError):
            composer.compose_disposition(
                asset, self._disposition(other, DispositionType.SALE, "100.00", "2275.00")
            )

    def test_lines_tagged_with_asset(self, composer, asset):
        entry = composer.compose_disposition(
            asset, self._disposition(asset, DispositionType.SALE, "2000.00", "2275.00")
        )
        assert entry.asset_ids == [asset.id]


class TestAdjustmentEntries:

    def test_reversal_pair(self, composer, asset):
        period = Period(year=2023, month=8)
        pair = composer.depreciation_reversal(asset, period, Decimal("37.50"))
        entry = composer.compose_adjustment(asset.company_id, period, [pair], "Reversal")

        assert entry.entry_type == EntryType.ADJUSTMENT
        debit = next(line for line in entry.lines if line.line_type == LineType.DEBIT)
        assert debit.account_code == "1500.1"
        assert entry.total_amount == Decimal("37.50")

    def test_entry_date_must_fall_in_period(self, composer, asset):
        pair = AdjustmentPair(
            debit_account=composer.accounts.cash,
            credit_account=composer.accounts.gain_on_sale,
            amount=Decimal("10.00"),
            description="Manual",
        )
        with pytest.raises(InvalidInputError):
            composer.compose_adjustment(
                asset.company_id, Period(year=2023, month=8), [pair], "Manual",
                entry_date=date(2023, 9, 1),
            )

    def test_empty_adjustment_rejected(self, composer, asset):
        with pytest.raises(InvalidInputError):
            composer.compose_adjustment(asset.company_id, Period(year=2023, month=8), [], "Empty")


class TestBalanceProperty:
    """Whatever the inputs, a composed entry balances to the cent."""

    def test_every_composed_entry_balances(self, company_id):
        for rounding_settings in (CompanySettings(), CompanySettings(include_partial_months=True)):
            composer = JournalComposer.for_company(rounding_settings)
            engine = composer.engine
            for purchase, salvage in (("2500.00", "250.00"), ("1333.33", "0"), ("999.99", "99.99")):
                cow = make_asset(company_id, purchase=purchase, salvage=salvage,
                                 freshen=date(2022, 3, 17))
                entries = [composer.compose_acquisition(cow)]
                entries.append(composer.compose_depreciation([cow], Period(year=2022, month=9)))
                for sale in ("0", "1.01", purchase, "5000.00"):
                    when = date(2023, 5, 9)
                    book = engine.book_value(cow, when)
                    entries.append(composer.compose_disposition(cow, Disposition(
                        company_id=company_id,
                        asset_id=cow.id,
                        disposition_date=when,
                        disposition_type=DispositionType.SALE,
                        sale_amount=Decimal(sale),
                        final_book_value=book,
                        gain_loss=Decimal(sale) - book,
                    )))
                for entry in entries:
                    assert entry.total_debits == entry.total_credits
                    assert entry.total_amount == entry.total_debits
