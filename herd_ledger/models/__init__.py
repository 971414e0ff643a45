"""
Data Models Package

This package contains all Pydantic models used in Herd Ledger.
All data flowing through the system must conform to these schemas.
"""

from herd_ledger.models.asset import (
    ALLOWED_TRANSITIONS,
    DISPOSITION_STATUS,
    AcquisitionType,
    AdjustmentType,
    Asset,
    AssetImportRecord,
    AssetStatus,
    BalanceAdjustment,
    DepreciationMethod,
    Disposition,
    DispositionType,
    RoundingMode,
    ValidationIssue,
    ValidationResult,
)
from herd_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from herd_ledger.models.journal import (
    BALANCE_TOLERANCE,
    EntryStatus,
    EntryType,
    JournalEntry,
    JournalLine,
    LineType,
)
from herd_ledger.models.period import Period, iter_periods
from herd_ledger.models.results import (
    BatchProgress,
    DepreciationSnapshot,
    DispositionResult,
    DriftFinding,
    DriftReport,
    ImportReport,
    IntegrityIssue,
    IntegrityReport,
    PostingResult,
    ReconciliationRow,
    RepairAction,
    RepairReport,
    RowResult,
    ScheduleRow,
)

__all__ = [
    # Asset models
    "ALLOWED_TRANSITIONS",
    "DISPOSITION_STATUS",
    "AcquisitionType",
    "AdjustmentType",
    "Asset",
    "AssetImportRecord",
    "AssetStatus",
    "BalanceAdjustment",
    "DepreciationMethod",
    "Disposition",
    "DispositionType",
    "RoundingMode",
    "ValidationIssue",
    "ValidationResult",
    # Journal models
    "BALANCE_TOLERANCE",
    "EntryStatus",
    "EntryType",
    "JournalEntry",
    "JournalLine",
    "LineType",
    "Period",
    "iter_periods",
    # Results
    "BatchProgress",
    "DepreciationSnapshot",
    "DispositionResult",
    "DriftFinding",
    "DriftReport",
    "ImportReport",
    "IntegrityIssue",
    "IntegrityReport",
    "PostingResult",
    "ReconciliationRow",
    "RepairAction",
    "RepairReport",
    "RowResult",
    "ScheduleRow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
