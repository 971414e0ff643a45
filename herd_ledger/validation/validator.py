"""
Two-Stage Validation Pipeline for Asset Records

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (freshen date, purchase price)
- Value ranges (positive price, non-negative salvage)

STAGE 2 - SEMANTIC VALIDATION:
- Date logic (no future dates, freshen on or after birth)
- Suspicious values (very old freshen dates)
- Duplicate tag detection (needs storage)

Stage 2 is skipped if stage 1 fails.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; defaults for missing optional values are filled in by
the asset ledger after validation passes.
"""

from datetime import date, timedelta
from typing import Optional
from uuid import UUID

from herd_ledger.models.asset import (
    AssetImportRecord,
    ValidationIssue,
    ValidationResult,
)
from herd_ledger.services.storage import LedgerStoreInterface


# Freshen dates further back than this are flagged for review
SUSPICIOUS_AGE = timedelta(days=365 * 15)


class AssetRecordValidator:
    """
    Validates import records through a two-stage pipeline.

    Stage 1: Schema validation (can run without storage)
    Stage 2: Semantic validation (needs storage for duplicate checks)
    """

    def __init__(self, store: Optional[LedgerStoreInterface] = None):
        """
        Args:
            store: Storage interface for duplicate checking.
                   If None, duplicate checking is skipped.
        """
        self._store = store

    def _validate_schema(
        self,
        record: AssetImportRecord,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if record.freshen_date is None:
            issues.append(ValidationIssue(
                field="freshen_date",
                issue_type="missing",
                message="Freshen date is required",
                severity="error",
            ))

        if record.purchase_price is None:
            issues.append(ValidationIssue(
                field="purchase_price",
                issue_type="missing",
                message="Purchase price is required",
                severity="error",
            ))
        elif record.purchase_price <= 0:
            issues.append(ValidationIssue(
                field="purchase_price",
                issue_type="invalid_value",
                message="Purchase price must be positive",
                severity="error",
            ))

        if record.salvage_value is not None and record.salvage_value < 0:
            issues.append(ValidationIssue(
                field="salvage_value",
                issue_type="invalid_value",
                message="Salvage value cannot be negative",
                severity="error",
            ))

        if record.birth_date is None:
            issues.append(ValidationIssue(
                field="birth_date",
                issue_type="missing",
                message="Birth date is not recorded",
                severity="warning",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        record: AssetImportRecord,
        today: date,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if record.freshen_date > today:
            issues.append(ValidationIssue(
                field="freshen_date",
                issue_type="future_date",
                message=f"Freshen date ({record.freshen_date}) is in the future",
                severity="error",
            ))
        elif record.freshen_date < today - SUSPICIOUS_AGE:
            issues.append(ValidationIssue(
                field="freshen_date",
                issue_type="suspicious_date",
                message=f"Freshen date ({record.freshen_date}) seems unusually old",
                severity="warning",
            ))

        if record.birth_date is not None:
            if record.birth_date > today:
                issues.append(ValidationIssue(
                    field="birth_date",
                    issue_type="future_date",
                    message=f"Birth date ({record.birth_date}) is in the future",
                    severity="error",
                ))
            if record.freshen_date < record.birth_date:
                issues.append(ValidationIssue(
                    field="freshen_date",
                    issue_type="inconsistent",
                    message="Freshen date is before birth date",
                    severity="error",
                ))

        if (
            record.salvage_value is not None
            and record.salvage_value >= record.purchase_price
        ):
            issues.append(ValidationIssue(
                field="salvage_value",
                issue_type="inconsistent",
                message="Salvage value must be less than purchase price",
                severity="error",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    async def _check_duplicates(
        self,
        company_id: UUID,
        record: AssetImportRecord,
    ) -> list[ValidationIssue]:
        """Tag numbers are unique per company."""
        if self._store is None:
            return []

        existing = await self._store.get_asset_by_tag(company_id, record.tag_number)
        if existing is None:
            return []
        return [ValidationIssue(
            field="tag_number",
            issue_type="duplicate",
            message=f"Tag number {record.tag_number} is already registered",
            severity="error",
        )]

    async def validate(
        self,
        company_id: UUID,
        record: AssetImportRecord,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run the full two-stage validation pipeline.

        Args:
            company_id: Company the record is imported into
            record: The raw record
            today: Reference date for future-date checks

        Returns:
            ValidationResult with all issues found
        """
        today = today or date.today()
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(record)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(record, today)
            all_issues.extend(semantic_issues)

            duplicate_issues = await self._check_duplicates(company_id, record)
            all_issues.extend(duplicate_issues)
            semantic_valid = semantic_valid and not duplicate_issues

        return ValidationResult(
            tag_number=record.tag_number,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            issues=all_issues,
        )
