"""
Journal Models for Herd Ledger

A JournalEntry owns its JournalLines. The pair is always written together
by one storage call, so no reader sees an entry without its lines.

DESIGN DECISION: The JournalEntry model does NOT reject unbalanced lines.
Stored data can be damaged, and the integrity tools must be able to load
and report such entries. The balance contract is enforced where entries
are created (JournalComposer).
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator

from herd_ledger.models.period import Period


# Largest difference between debits and credits still treated as balanced
BALANCE_TOLERANCE = Decimal("0.01")


class EntryType(str, Enum):
    """Business event behind a journal entry."""
    ACQUISITION = "acquisition"
    DEPRECIATION = "depreciation"
    DISPOSITION = "disposition"
    ADJUSTMENT = "adjustment"


class EntryStatus(str, Enum):
    """
    Journal entry status.

    POSTED entries are immutable apart from integrity repair.
    EXPORTED entries are never touched again.
    """
    DRAFT = "draft"
    POSTED = "posted"
    EXPORTED = "exported"


class LineType(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class JournalLine(BaseModel):
    """One debit or credit line of a journal entry."""

    id: UUID = Field(default_factory=uuid4)
    journal_entry_id: Optional[UUID] = None
    account_code: str = Field(..., min_length=1, max_length=20)
    account_name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=500)
    debit_amount: Decimal = Field(default=Decimal("0"), ge=0)
    credit_amount: Decimal = Field(default=Decimal("0"), ge=0)
    line_type: LineType
    asset_id: Optional[UUID] = Field(
        default=None,
        description="Weak reference to the asset this line is about"
    )

    @model_validator(mode='after')
    def validate_sides(self) -> 'JournalLine':
        if self.debit_amount > 0 and self.credit_amount > 0:
            raise ValueError("A journal line cannot carry both a debit and a credit")
        if self.line_type == LineType.DEBIT and self.credit_amount > 0:
            raise ValueError("Debit line carries a credit amount")
        if self.line_type == LineType.CREDIT and self.debit_amount > 0:
            raise ValueError("Credit line carries a debit amount")
        return self

    @property
    def amount(self) -> Decimal:
        return self.debit_amount if self.line_type == LineType.DEBIT else self.credit_amount


class JournalEntry(BaseModel):
    """A dated accounting event and the lines it owns."""

    id: UUID = Field(default_factory=uuid4)
    company_id: UUID
    entry_date: date
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=9999)
    entry_type: EntryType
    description: str = Field(..., min_length=1, max_length=500)
    total_amount: Decimal = Field(default=Decimal("0"), ge=0)
    status: EntryStatus = EntryStatus.DRAFT
    lines: list[JournalLine] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode='after')
    def link_lines(self) -> 'JournalEntry':
        """Point every owned line back at this entry."""
        for line in self.lines:
            line.journal_entry_id = self.id
        return self

    @property
    def period(self) -> Period:
        return Period(year=self.year, month=self.month)

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit_amount for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit_amount for line in self.lines), Decimal("0"))

    @property
    def variance(self) -> Decimal:
        return abs(self.total_debits - self.total_credits)

    @property
    def is_balanced(self) -> bool:
        return self.variance <= BALANCE_TOLERANCE

    @property
    def asset_ids(self) -> list[UUID]:
        """Distinct assets referenced by the lines, in line order."""
        seen: list[UUID] = []
        for line in self.lines:
            if line.asset_id is not None and line.asset_id not in seen:
                seen.append(line.asset_id)
        return seen

    def with_status(self, status: EntryStatus) -> "JournalEntry":
        return self.model_copy(update={"status": status})
