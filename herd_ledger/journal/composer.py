"""
Journal Composer

Turns business events into balanced journal entries:
1. Acquisition - asset enters the herd
2. Depreciation - one period's charge for a set of assets, plus any
   pending balance adjustments
3. Disposition - asset leaves the herd with a gain or loss
4. Adjustment - arbitrary matched pairs (e.g. reversing a charge)

DESIGN DECISION: The composer never writes to storage and never
calculates depreciation itself. It receives amounts from the engine,
builds lines from the company's chart of accounts, and refuses to
return an entry whose debits and credits differ by even a cent.
"""

from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from herd_ledger.config.company import Account, ChartOfAccounts, CompanySettings
from herd_ledger.depreciation.engine import DepreciationEngine
from herd_ledger.errors import InvalidInputError, UnbalancedEntryError
from herd_ledger.models.asset import (
    AcquisitionType,
    Asset,
    BalanceAdjustment,
    Disposition,
)
from herd_ledger.models.journal import (
    EntryStatus,
    EntryType,
    JournalEntry,
    JournalLine,
    LineType,
)
from herd_ledger.models.period import Period


logger = structlog.get_logger(__name__)


class AdjustmentPair(BaseModel):
    """One matched debit/credit pair of an adjustment entry."""

    debit_account: Account
    credit_account: Account
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=500)
    asset_id: Optional[UUID] = None


def _debit(account: Account, amount: Decimal, description: str,
           asset_id: Optional[UUID] = None) -> JournalLine:
    return JournalLine(
        account_code=account.code,
        account_name=account.name,
        description=description,
        debit_amount=amount,
        line_type=LineType.DEBIT,
        asset_id=asset_id,
    )


def _credit(account: Account, amount: Decimal, description: str,
            asset_id: Optional[UUID] = None) -> JournalLine:
    return JournalLine(
        account_code=account.code,
        account_name=account.name,
        description=description,
        credit_amount=amount,
        line_type=LineType.CREDIT,
        asset_id=asset_id,
    )


class JournalComposer:
    """
    Builds balanced draft entries from a chart of accounts.

    Usage:
        composer = JournalComposer.for_company(settings)
        entry = composer.compose_acquisition(asset)
    """

    def __init__(
        self,
        accounts: ChartOfAccounts,
        engine: Optional[DepreciationEngine] = None,
    ):
        """
        Args:
            accounts: Company chart of accounts
            engine: Used for period charges when compose_depreciation is
                    not handed precomputed charges
        """
        self.accounts = accounts
        self.engine = engine

    @classmethod
    def for_company(cls, settings: CompanySettings) -> "JournalComposer":
        return cls(settings.accounts, DepreciationEngine(settings))

    # -------------------------------------------------------------------------
    # Acquisition
    # -------------------------------------------------------------------------

    def compose_acquisition(self, asset: Asset) -> JournalEntry:
        """
        Dr Livestock asset / Cr Cash (purchased) or Cr Raised transfer (raised),
        dated at the freshen date.
        """
        if asset.acquisition_type == AcquisitionType.RAISED:
            offset = self.accounts.raised_transfer
        else:
            offset = self.accounts.cash

        label = f"Cow #{asset.tag_number}"
        lines = [
            _debit(self.accounts.livestock_asset, asset.purchase_price,
                   f"Acquisition - {label}", asset.id),
            _credit(offset, asset.purchase_price,
                    f"Acquisition - {asset.acquisition_type.value} - {label}", asset.id),
        ]
        return self._finalize(
            company_id=asset.company_id,
            entry_date=asset.freshen_date,
            entry_type=EntryType.ACQUISITION,
            description=f"Cow Acquisition - {asset.acquisition_type.value} - {label}",
            lines=lines,
        )

    # -------------------------------------------------------------------------
    # Depreciation
    # -------------------------------------------------------------------------

    def compose_depreciation(
        self,
        assets: Iterable[Asset],
        period: Period,
        pending_adjustments: Iterable[BalanceAdjustment] = (),
        charges: Optional[Mapping[UUID, Decimal]] = None,
    ) -> JournalEntry:
        """
        One depreciation entry for a period.

        Each asset with a non-zero charge gets an asset-tagged pair:
        Dr Depreciation Expense / Cr Accumulated Depreciation. Each pending
        adjustment becomes a matched pair against Depreciation Expense.

        Args:
            assets: Assets to charge
            period: Accounting period; the entry is dated at its last day
            pending_adjustments: Unapplied balance adjustments to fold in
            charges: Precomputed charge per asset id; computed by the
                     engine when omitted

        Raises:
            InvalidInputError: If there is nothing to post or no engine
                               is available to compute charges
            UnbalancedEntryError: If the composed lines do not balance
        """
        assets = list(assets)
        adjustments = list(pending_adjustments)
        expense = self.accounts.depreciation_expense
        accumulated = self.accounts.accumulated_depreciation

        lines: list[JournalLine] = []
        charged: list[Asset] = []
        for asset in assets:
            amount = self._charge_for(asset, period, charges)
            if amount == 0:
                continue
            if amount < 0:
                raise InvalidInputError(
                    f"Negative depreciation charge for cow #{asset.tag_number}"
                )
            label = f"Depreciation {period} - Cow #{asset.tag_number}"
            lines.append(_debit(expense, amount, label, asset.id))
            lines.append(_credit(accumulated, amount, label, asset.id))
            charged.append(asset)

        for adjustment in adjustments:
            lines.extend(self._adjustment_lines(adjustment))

        company_ids = {a.company_id for a in assets} | {a.company_id for a in adjustments}
        if not lines or not company_ids:
            raise InvalidInputError(f"Nothing to post for {period}")
        if len(company_ids) > 1:
            raise InvalidInputError("Depreciation entry cannot span companies")

        description = f"Monthly Depreciation - {period}"
        if len(charged) == 1:
            description += f" - Cow #{charged[0].tag_number}"

        return self._finalize(
            company_id=company_ids.pop(),
            entry_date=period.last_day,
            entry_type=EntryType.DEPRECIATION,
            description=description,
            lines=lines,
        )

    def _charge_for(
        self,
        asset: Asset,
        period: Period,
        charges: Optional[Mapping[UUID, Decimal]],
    ) -> Decimal:
        if charges is not None and asset.id in charges:
            return charges[asset.id]
        if self.engine is None:
            raise InvalidInputError(
                f"No charge supplied for cow #{asset.tag_number} and no engine configured"
            )
        return self.engine.period_depreciation(asset, period)

    def _adjustment_lines(self, adjustment: BalanceAdjustment) -> list[JournalLine]:
        """
        Positive: Dr expense / Cr target. Negative: Dr target / Cr expense.

        The target defaults to Accumulated Depreciation.
        """
        expense = self.accounts.depreciation_expense
        target = self._target_account(adjustment)
        amount = abs(adjustment.adjustment_amount)
        label = (
            f"Adjustment {adjustment.prior_period_year}-"
            f"{adjustment.prior_period_month:02d}: {adjustment.description}"
        )
        if adjustment.adjustment_amount > 0:
            return [_debit(expense, amount, label), _credit(target, amount, label)]
        return [_debit(target, amount, label), _credit(expense, amount, label)]

    def _target_account(self, adjustment: BalanceAdjustment) -> Account:
        if adjustment.target_account_code is None:
            return self.accounts.accumulated_depreciation
        account = self.accounts.by_code(adjustment.target_account_code)
        if account is None:
            raise InvalidInputError(
                f"Unknown adjustment target account {adjustment.target_account_code}"
            )
        return account

    # -------------------------------------------------------------------------
    # Disposition
    # -------------------------------------------------------------------------

    def compose_disposition(self, asset: Asset, disposition: Disposition) -> JournalEntry:
        """
        Remove the asset from the books.

            Dr Cash                      sale amount (if any)
            Dr Accumulated Depreciation  purchase - final book value (if any)
            Cr Livestock asset           purchase price
            Dr Loss / Cr Gain            the difference

        Raises:
            InvalidInputError: If the disposition is for another asset
            UnbalancedEntryError: If the composed lines do not balance
        """
        if disposition.asset_id != asset.id:
            raise InvalidInputError(
                f"Disposition {disposition.id} does not belong to cow #{asset.tag_number}"
            )
        if disposition.final_book_value > asset.purchase_price:
            raise InvalidInputError("Final book value exceeds purchase price")

        kind = disposition.disposition_type.value
        label = f"Disposition - {kind} - Cow #{asset.tag_number}"
        accumulated = asset.purchase_price - disposition.final_book_value

        lines: list[JournalLine] = []
        if disposition.sale_amount > 0:
            lines.append(_debit(self.accounts.cash, disposition.sale_amount, label, asset.id))
        if accumulated != 0:
            lines.append(_debit(
                self.accounts.accumulated_depreciation, accumulated, label, asset.id
            ))
        lines.append(_credit(self.accounts.livestock_asset, asset.purchase_price, label, asset.id))

        # Positive difference is a loss
        difference = asset.purchase_price - disposition.sale_amount - accumulated
        if difference != 0:
            account = self.accounts.gain_loss_account(
                disposition.disposition_type, is_gain=difference < 0
            )
            if difference > 0:
                lines.append(_debit(account, difference, f"Loss - {label}", asset.id))
            else:
                lines.append(_credit(account, -difference, f"Gain - {label}", asset.id))

        return self._finalize(
            company_id=asset.company_id,
            entry_date=disposition.disposition_date,
            entry_type=EntryType.DISPOSITION,
            description=f"Cow Disposition - {kind} - Cow #{asset.tag_number}",
            lines=lines,
        )

    # -------------------------------------------------------------------------
    # Adjustment
    # -------------------------------------------------------------------------

    def compose_adjustment(
        self,
        company_id: UUID,
        period: Period,
        pairs: Iterable[AdjustmentPair],
        description: str,
        entry_date: Optional[date] = None,
    ) -> JournalEntry:
        """Adjustment entry from matched pairs, dated in `period`."""
        lines: list[JournalLine] = []
        for pair in pairs:
            lines.append(_debit(pair.debit_account, pair.amount, pair.description, pair.asset_id))
            lines.append(_credit(pair.credit_account, pair.amount, pair.description, pair.asset_id))
        if not lines:
            raise InvalidInputError("Adjustment entry needs at least one pair")

        entry_date = entry_date or period.last_day
        if not period.contains(entry_date):
            raise InvalidInputError(f"Entry date {entry_date} is outside {period}")

        return self._finalize(
            company_id=company_id,
            entry_date=entry_date,
            entry_type=EntryType.ADJUSTMENT,
            description=description,
            lines=lines,
        )

    def depreciation_reversal(self, asset: Asset, period: Period, amount: Decimal) -> AdjustmentPair:
        """Pair that takes back a depreciation charge already posted for a period."""
        return AdjustmentPair(
            debit_account=self.accounts.accumulated_depreciation,
            credit_account=self.accounts.depreciation_expense,
            amount=amount,
            description=f"Reverse depreciation {period} - Cow #{asset.tag_number}",
            asset_id=asset.id,
        )

    # -------------------------------------------------------------------------
    # Balance check
    # -------------------------------------------------------------------------

    def _finalize(
        self,
        company_id: UUID,
        entry_date: date,
        entry_type: EntryType,
        description: str,
        lines: list[JournalLine],
    ) -> JournalEntry:
        entry = JournalEntry(
            company_id=company_id,
            entry_date=entry_date,
            month=entry_date.month,
            year=entry_date.year,
            entry_type=entry_type,
            description=description[:500],
            status=EntryStatus.DRAFT,
            lines=lines,
        )
        debits, credits = entry.total_debits, entry.total_credits
        if debits != credits:
            logger.error(
                "unbalanced_entry_rejected",
                entry_type=entry_type.value,
                debits=str(debits),
                credits=str(credits),
            )
            raise UnbalancedEntryError(
                f"Journal entry is unbalanced: debits {debits}, credits {credits}",
                debits=debits,
                credits=credits,
            )
        entry.total_amount = debits
        return entry
