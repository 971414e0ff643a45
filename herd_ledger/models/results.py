"""
Result Models for Herd Ledger

Every public operation returns one of these instead of a raw store row.

DESIGN DECISION: Results that can fail are tagged variants: an explicit
`success` flag plus the fields that belong to that outcome. Validators
reject mixed states (a success carrying an error, a failure without one).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from herd_ledger.models.journal import EntryStatus, EntryType
from herd_ledger.models.period import Period


# =============================================================================
# DEPRECIATION
# =============================================================================

class DepreciationSnapshot(BaseModel):
    """Depreciation figures for one asset as of a date."""

    asset_id: UUID
    as_of: date
    monthly_depreciation: Decimal
    accumulated_depreciation: Decimal
    book_value: Decimal
    months_elapsed: Decimal
    remaining_months: Decimal


class ScheduleRow(BaseModel):
    """One period of a depreciation schedule."""

    period: Period
    depreciation: Decimal
    accumulated_depreciation: Decimal
    book_value: Decimal


# =============================================================================
# DISPOSITION
# =============================================================================

class DispositionResult(BaseModel):
    """Outcome of processing one disposition."""

    success: bool
    asset_id: UUID
    disposition_id: Optional[UUID] = None
    journal_entry_id: Optional[UUID] = None
    final_book_value: Optional[Decimal] = None
    gain_loss: Optional[Decimal] = None
    accumulated_depreciation: Optional[Decimal] = None
    backfilled_entries: int = 0
    reversal_entries: int = 0
    error: Optional[str] = None
    error_code: Optional[str] = None

    @model_validator(mode='after')
    def validate_variant(self) -> 'DispositionResult':
        if self.success:
            if self.error is not None:
                raise ValueError("Successful disposition cannot carry an error")
            if self.final_book_value is None or self.gain_loss is None:
                raise ValueError("Successful disposition needs book value and gain/loss")
        elif not self.error:
            raise ValueError("Failed disposition must carry an error message")
        return self

    @classmethod
    def failed(cls, asset_id: UUID, error: Exception) -> "DispositionResult":
        return cls(
            success=False,
            asset_id=asset_id,
            error=str(error) or type(error).__name__,
            error_code=type(error).__name__,
        )


# =============================================================================
# POSTING
# =============================================================================

class PostingResult(BaseModel):
    """Outcome of posting one month of depreciation."""

    period: Period
    journal_entry_id: Optional[UUID] = None
    assets_charged: int = 0
    assets_skipped: int = 0
    adjustments_applied: int = 0
    total_depreciation: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")

    @property
    def created(self) -> bool:
        return self.journal_entry_id is not None


# =============================================================================
# BATCH
# =============================================================================

class BatchProgress(BaseModel):
    """
    Progress of a batch run, reported after every batch.

    `errors` holds the first N messages only; `error_count` is the total.
    """

    current_batch: int = 0
    total_batches: int = 0
    processed: int = 0
    created: int = 0
    errors: list[str] = Field(default_factory=list)
    error_count: int = 0
    cancelled: bool = False
    completed: bool = False
    next_offset: int = 0

    def record_error(self, message: str, limit: int) -> None:
        self.error_count += 1
        if len(self.errors) < limit:
            self.errors.append(message)


# =============================================================================
# RECONCILIATION
# =============================================================================

class ReconciliationRow(BaseModel):
    """Head count and value roll-forward for one month."""

    period: Period
    starting_balance: int
    additions: int
    disposals: int
    ending_balance: int
    starting_amount: Decimal
    addition_amount: Decimal
    disposal_amount: Decimal
    ending_amount: Decimal

    @model_validator(mode='after')
    def validate_flow(self) -> 'ReconciliationRow':
        if self.ending_balance != self.starting_balance + self.additions - self.disposals:
            raise ValueError("Ending balance does not follow from the month's flow")
        if self.ending_amount != self.starting_amount + self.addition_amount - self.disposal_amount:
            raise ValueError("Ending amount does not follow from the month's flow")
        return self


class DriftFinding(BaseModel):
    """Journal total versus ledger total for one category of one month."""

    period: Period
    category: str = Field(..., pattern="^(additions|disposals|depreciation)$")
    ledger_amount: Decimal
    journal_amount: Decimal
    difference: Decimal
    flagged: bool


class DriftReport(BaseModel):
    company_id: UUID
    period: Period
    findings: list[DriftFinding] = Field(default_factory=list)

    @property
    def has_drift(self) -> bool:
        return any(finding.flagged for finding in self.findings)

    @property
    def flagged(self) -> list[DriftFinding]:
        return [finding for finding in self.findings if finding.flagged]


# =============================================================================
# INTEGRITY
# =============================================================================

class IntegrityIssue(BaseModel):
    """An entry whose debits and credits disagree."""

    entry_id: UUID
    entry_date: date
    entry_type: EntryType
    status: EntryStatus
    description: str
    total_amount: Decimal
    line_count: int
    total_debits: Decimal
    total_credits: Decimal
    variance: Decimal

    @property
    def is_orphan(self) -> bool:
        return self.line_count <= 1


class IntegrityReport(BaseModel):
    company_id: UUID
    period: Period
    checked_at: datetime = Field(default_factory=datetime.utcnow)
    entries_checked: int = 0
    issues: list[IntegrityIssue] = Field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.issues


class RepairAction(BaseModel):
    """What happened to one problem entry."""

    entry_id: UUID
    action: str = Field(..., pattern="^(deleted|repaired|skipped|failed)$")
    message: str
    variance_before: Decimal
    variance_after: Optional[Decimal] = None


class RepairReport(BaseModel):
    company_id: UUID
    period: Period
    checked: int = 0
    actions: list[RepairAction] = Field(default_factory=list)
    cancelled: bool = False

    def _count(self, action: str) -> int:
        return sum(1 for item in self.actions if item.action == action)

    @property
    def deleted(self) -> int:
        return self._count("deleted")

    @property
    def repaired(self) -> int:
        return self._count("repaired")

    @property
    def skipped(self) -> int:
        return self._count("skipped")

    @property
    def errors(self) -> list[str]:
        return [item.message for item in self.actions if item.action == "failed"]


# =============================================================================
# IMPORT
# =============================================================================

class RowResult(BaseModel):
    """Outcome for one import row."""

    row_number: int = Field(..., ge=1)
    tag_number: str
    success: bool
    asset_id: Optional[UUID] = None
    journal_entry_id: Optional[UUID] = None
    errors: list[str] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_variant(self) -> 'RowResult':
        if self.success and (self.asset_id is None or self.errors):
            raise ValueError("Successful row needs an asset id and no errors")
        if not self.success and not self.errors:
            raise ValueError("Failed row must list at least one error")
        return self


class ImportReport(BaseModel):
    company_id: UUID
    rows: list[RowResult] = Field(default_factory=list)

    @property
    def imported(self) -> int:
        return sum(1 for row in self.rows if row.success)

    @property
    def failed(self) -> int:
        return sum(1 for row in self.rows if not row.success)
