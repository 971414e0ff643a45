"""
Core Asset Models for Herd Ledger

These models define the schemas for the livestock register:
1. Asset - one depreciable animal and its lifecycle state
2. Disposition - the single event that takes an asset out of service
3. BalanceAdjustment - a signed correction folded into a later period
4. AssetImportRecord - the raw row handed over by the import pipeline

DESIGN DECISION: Monetary amounts are Decimal with two decimal places.
Asset invariants are checked by model validators, so an Asset that exists
in memory always satisfies salvage <= current value <= purchase price.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

from herd_ledger.errors import InvalidStateError


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class DepreciationMethod(str, Enum):
    """Supported depreciation methods."""
    STRAIGHT_LINE = "straight-line"
    DECLINING_BALANCE = "declining-balance"
    SUM_OF_YEARS = "sum-of-years"


class RoundingMode(str, Enum):
    """Precision applied to every calculated amount."""
    CENT = "cent"
    WHOLE_UNIT = "whole_unit"


class AssetStatus(str, Enum):
    """
    Asset lifecycle status.

    CRITICAL: Only ACTIVE assets depreciate. The other states are terminal.
    """
    ACTIVE = "active"
    SOLD = "sold"
    DECEASED = "deceased"
    RETIRED = "retired"


class AcquisitionType(str, Enum):
    """How the asset entered the herd."""
    PURCHASED = "purchased"
    RAISED = "raised"


class DispositionType(str, Enum):
    """Ways an asset leaves service."""
    SALE = "sale"
    DEATH = "death"
    CULLED = "culled"


class AdjustmentType(str, Enum):
    """Balance adjustment categories."""
    DEPRECIATION_CORRECTION = "depreciation_correction"
    DISPOSITION_CORRECTION = "disposition_correction"
    MANUAL = "manual"


# Terminal status reached by each disposition type
DISPOSITION_STATUS: dict[DispositionType, AssetStatus] = {
    DispositionType.SALE: AssetStatus.SOLD,
    DispositionType.DEATH: AssetStatus.DECEASED,
    DispositionType.CULLED: AssetStatus.RETIRED,
}

ALLOWED_TRANSITIONS: dict[AssetStatus, frozenset[AssetStatus]] = {
    AssetStatus.ACTIVE: frozenset(
        {AssetStatus.SOLD, AssetStatus.DECEASED, AssetStatus.RETIRED}
    ),
    AssetStatus.SOLD: frozenset(),
    AssetStatus.DECEASED: frozenset(),
    AssetStatus.RETIRED: frozenset(),
}


# =============================================================================
# ASSET
# =============================================================================

class Asset(BaseModel):
    """
    A depreciable animal.

    current_value and total_depreciation are the values last written by
    the depreciation engine. They are a cache of engine output, not an
    independent source of truth.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    company_id: UUID

    tag_number: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Ear tag, unique per company"
    )
    name: Optional[str] = Field(default=None, max_length=100)
    birth_date: Optional[date] = None
    freshen_date: date = Field(
        ...,
        description="Date the animal entered production; depreciation starts here"
    )

    purchase_price: Decimal = Field(..., gt=0, decimal_places=2)
    salvage_value: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    current_value: Optional[Decimal] = Field(default=None, ge=0)
    total_depreciation: Decimal = Field(default=Decimal("0"), ge=0)

    depreciation_method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE
    useful_life_months: Optional[int] = Field(
        default=None,
        ge=1,
        le=600,
        description="Overrides the company useful life when set"
    )
    status: AssetStatus = AssetStatus.ACTIVE
    acquisition_type: AcquisitionType = AcquisitionType.PURCHASED

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode='after')
    def validate_values(self) -> 'Asset':
        """Validate value relationships."""
        if self.salvage_value > self.purchase_price:
            raise ValueError("Salvage value cannot exceed purchase price")

        if self.total_depreciation > self.depreciable_base:
            raise ValueError(
                "Total depreciation cannot exceed purchase price minus salvage value"
            )

        if self.current_value is None:
            self.current_value = self.purchase_price - self.total_depreciation

        if not (self.salvage_value <= self.current_value <= self.purchase_price):
            raise ValueError(
                "Current value must lie between salvage value and purchase price"
            )

        if self.birth_date and self.freshen_date < self.birth_date:
            raise ValueError("Freshen date cannot be before birth date")

        return self

    @property
    def depreciable_base(self) -> Decimal:
        return self.purchase_price - self.salvage_value

    @property
    def is_active(self) -> bool:
        return self.status == AssetStatus.ACTIVE

    def transition_to(self, status: AssetStatus) -> "Asset":
        """
        Return a copy of this asset in the new status.

        Raises:
            InvalidStateError: If the transition is not allowed
        """
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStateError(
                f"Asset {self.tag_number} cannot move from "
                f"{self.status.value} to {status.value}"
            )
        return self.model_copy(
            update={"status": status, "updated_at": datetime.utcnow()}
        )


# =============================================================================
# DISPOSITION
# =============================================================================

class Disposition(BaseModel):
    """
    Removal of an asset from service.

    asset_id and journal_entry_id are lookups only. The asset may later be
    purged and the entry may be deleted by integrity repair.
    """

    id: UUID = Field(default_factory=uuid4)
    company_id: UUID
    asset_id: UUID
    disposition_date: date
    disposition_type: DispositionType
    sale_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    final_book_value: Decimal = Field(default=Decimal("0"), ge=0)
    gain_loss: Decimal = Decimal("0")
    notes: Optional[str] = Field(default=None, max_length=1000)
    journal_entry_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_gain(self) -> bool:
        return self.gain_loss > 0


# =============================================================================
# BALANCE ADJUSTMENT
# =============================================================================

class BalanceAdjustment(BaseModel):
    """
    A signed correction for a prior period.

    Pending adjustments are folded into the next depreciation entry as a
    matched pair of lines, so the entry stays balanced.
    """

    id: UUID = Field(default_factory=uuid4)
    company_id: UUID
    prior_period_month: int = Field(..., ge=1, le=12)
    prior_period_year: int = Field(..., ge=1900, le=9999)
    adjustment_type: AdjustmentType = AdjustmentType.MANUAL
    adjustment_amount: Decimal = Field(..., decimal_places=2)
    description: str = Field(..., min_length=1, max_length=500)
    target_account_code: Optional[str] = Field(
        default=None,
        description="Account offset against Depreciation Expense; "
                    "defaults to Accumulated Depreciation"
    )
    applied: bool = False
    applied_journal_entry_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode='after')
    def validate_amount(self) -> 'BalanceAdjustment':
        if self.adjustment_amount == 0:
            raise ValueError("Adjustment amount cannot be zero")
        return self


# =============================================================================
# IMPORT MODELS
# =============================================================================

class AssetImportRecord(BaseModel):
    """
    A raw asset row from the import pipeline.

    All fields except the tag are optional because source files are often
    incomplete. The validator decides what is fatal.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    tag_number: str = Field(..., min_length=1, max_length=50)
    name: Optional[str] = None
    birth_date: Optional[date] = None
    freshen_date: Optional[date] = None
    purchase_price: Optional[Decimal] = None
    salvage_value: Optional[Decimal] = None
    depreciation_method: Optional[DepreciationMethod] = None
    acquisition_type: AcquisitionType = AcquisitionType.PURCHASED


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'duplicate')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation of an import record.

    Stage 1: Schema validation (required fields, value ranges)
    Stage 2: Semantic validation (date logic, duplicate tags)
    """

    tag_number: str
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    schema_valid: bool
    semantic_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def error_messages(self) -> list[str]:
        return [
            f"{issue.field}: {issue.message}"
            for issue in self.issues
            if issue.severity == "error"
        ]
