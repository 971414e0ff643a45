"""
Per-Company Configuration

DESIGN DECISION: CompanySettings is the single configuration struct that
the depreciation engine, the journal composer and the reconciliation
engine are built from. Nothing in those components reads environment
settings or hard-codes an account code.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from herd_ledger.config.settings import get_settings
from herd_ledger.models.asset import DepreciationMethod, DispositionType, RoundingMode


class Account(BaseModel):
    """A ledger account: code plus display name."""

    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)


class ChartOfAccounts(BaseModel):
    """
    Account roles used when composing journal entries.

    Role names are fixed; the code and name behind each role belong to
    the company.
    """

    livestock_asset: Account = Account(code="1500", name="Dairy Cows")
    accumulated_depreciation: Account = Account(
        code="1500.1", name="Accumulated Depreciation - Dairy Cows"
    )
    cash: Account = Account(code="1000", name="Cash")
    raised_transfer: Account = Account(
        code="3000", name="Investment in Raised Livestock"
    )
    depreciation_expense: Account = Account(code="6100", name="Depreciation Expense")
    gain_on_sale: Account = Account(code="8000", name="Gain on Sale of Assets")
    loss_on_sale: Account = Account(code="9002", name="Loss on Sale of Assets")
    loss_on_death: Account = Account(code="9001", name="Loss on Dead Cows")
    loss_on_cull: Account = Account(code="9003", name="Loss on Culled Cows")
    loss_on_disposal: Account = Account(code="9000", name="Loss on Disposal of Assets")

    @model_validator(mode='after')
    def validate_unique_codes(self) -> 'ChartOfAccounts':
        codes = [account.code for account in self.accounts().values()]
        if len(codes) != len(set(codes)):
            raise ValueError("Every account role needs its own account code")
        return self

    def accounts(self) -> dict[str, Account]:
        """All roles, keyed by role name."""
        return {
            name: getattr(self, name)
            for name in type(self).model_fields
        }

    def by_code(self, code: str) -> Optional[Account]:
        for account in self.accounts().values():
            if account.code == code:
                return account
        return None

    def gain_loss_account(self, disposition_type: DispositionType, is_gain: bool) -> Account:
        """
        Account that absorbs the difference between proceeds and book value.

        Gains always go to the gain account. Losses are split by cause.
        """
        if is_gain:
            return self.gain_on_sale
        if disposition_type == DispositionType.SALE:
            return self.loss_on_sale
        if disposition_type == DispositionType.DEATH:
            return self.loss_on_death
        if disposition_type == DispositionType.CULLED:
            return self.loss_on_cull
        return self.loss_on_disposal


class CompanySettings(BaseModel):
    """Everything that changes accounting results for one company."""

    depreciation_years: int = Field(default=5, ge=1, le=50)
    salvage_percent: Decimal = Field(default=Decimal("10"), ge=0, le=100)
    depreciation_method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE
    rounding: RoundingMode = RoundingMode.CENT
    include_partial_months: bool = False
    fiscal_year_start_month: int = Field(default=1, ge=1, le=12)
    accounts: ChartOfAccounts = Field(default_factory=ChartOfAccounts)

    @property
    def useful_life_months(self) -> int:
        return self.depreciation_years * 12

    @classmethod
    def from_defaults(cls) -> "CompanySettings":
        """Build settings from the environment defaults."""
        defaults = get_settings().depreciation
        return cls(
            depreciation_years=defaults.years,
            salvage_percent=defaults.salvage_percent,
            depreciation_method=defaults.method,
            rounding=defaults.rounding,
            include_partial_months=defaults.include_partial_months,
            fiscal_year_start_month=defaults.fiscal_year_start_month,
        )


async def load_company_settings(store, company_id: UUID) -> CompanySettings:
    """
    Load a company's settings from the store.

    Falls back to the environment defaults when the company has never
    saved any.
    """
    settings = await store.get_company_settings(company_id)
    if settings is None:
        return CompanySettings.from_defaults()
    return settings
