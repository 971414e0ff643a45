"""
Audit Models for Herd Ledger

Every ledger mutation and every batch run is logged for audit purposes.
This provides:
1. Traceability from a journal entry back to the operation that wrote it
2. Debugging information when a batch reports errors
3. A record of every repair, deletion and drift finding

DESIGN DECISION: Events are append-only. A repair or deletion is itself
recorded as a new event; nothing already written is edited.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Register
    ASSET_REGISTERED = "asset_registered"
    ASSET_REJECTED = "asset_rejected"

    # Depreciation
    DEPRECIATION_POSTED = "depreciation_posted"

    # Disposition
    DISPOSITION_PROCESSED = "disposition_processed"
    DISPOSITION_FAILED = "disposition_failed"

    # Batch catch-up
    CATCHUP_BATCH_COMPLETED = "catchup_batch_completed"
    CATCHUP_FINISHED = "catchup_finished"

    # Integrity
    INTEGRITY_ISSUE_FOUND = "integrity_issue_found"
    ENTRY_REPAIRED = "entry_repaired"
    ORPHAN_DELETED = "orphan_deleted"
    REPAIR_FAILED = "repair_failed"

    # Reconciliation
    DRIFT_DETECTED = "drift_detected"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_STORE_ERROR = "external_store_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    One recorded ledger event.

    entity_type/entity_id point at the asset, journal entry, batch or
    period the event is about.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - which company and entity is this about?
    company_id: Optional[UUID] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'asset', 'journal_entry', 'batch')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all batches of one catch-up run)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Flatten to keyword arguments for a structlog call.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "company_id": str(self.company_id) if self.company_id else None,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Static factories, one per ledger event type.

    Usage:
        event = AuditEventBuilder.asset_registered(company_id, asset_id, tag, ...)
        event = AuditEventBuilder.entry_repaired(company_id, entry_id, ...)
    """

    @staticmethod
    def asset_registered(
        company_id: UUID,
        asset_id: UUID,
        tag_number: str,
        purchase_price: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSET_REGISTERED,
            company_id=company_id,
            entity_type="asset",
            entity_id=asset_id,
            correlation_id=correlation_id,
            description=f"Asset registered: #{tag_number}",
            details={
                "tag_number": tag_number,
                "purchase_price": purchase_price,
            },
        )

    @staticmethod
    def asset_rejected(
        company_id: UUID,
        tag_number: str,
        errors: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSET_REJECTED,
            severity=AuditSeverity.WARNING,
            company_id=company_id,
            entity_type="asset",
            correlation_id=correlation_id,
            description=f"Asset #{tag_number} rejected with {len(errors)} errors",
            details={"tag_number": tag_number, "errors": errors},
        )

    @staticmethod
    def depreciation_posted(
        company_id: UUID,
        entry_id: UUID,
        period: str,
        assets_charged: int,
        total_amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEPRECIATION_POSTED,
            company_id=company_id,
            entity_type="journal_entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Depreciation posted for {period}: {assets_charged} assets",
            details={
                "period": period,
                "assets_charged": assets_charged,
                "total_amount": total_amount,
            },
        )

    @staticmethod
    def disposition_processed(
        company_id: UUID,
        asset_id: UUID,
        disposition_type: str,
        final_book_value: str,
        gain_loss: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DISPOSITION_PROCESSED,
            company_id=company_id,
            entity_type="asset",
            entity_id=asset_id,
            correlation_id=correlation_id,
            description=f"Disposition processed: {disposition_type}",
            details={
                "disposition_type": disposition_type,
                "final_book_value": final_book_value,
                "gain_loss": gain_loss,
            },
        )

    @staticmethod
    def disposition_failed(
        company_id: UUID,
        asset_id: UUID,
        error_code: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DISPOSITION_FAILED,
            severity=AuditSeverity.WARNING,
            company_id=company_id,
            entity_type="asset",
            entity_id=asset_id,
            correlation_id=correlation_id,
            description="Disposition rejected",
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def catchup_batch_completed(
        company_id: UUID,
        batch_number: int,
        processed: int,
        created: int,
        error_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATCHUP_BATCH_COMPLETED,
            severity=AuditSeverity.WARNING if error_count else AuditSeverity.INFO,
            company_id=company_id,
            entity_type="batch",
            correlation_id=correlation_id,
            description=f"Catch-up batch {batch_number}: {processed} assets, {created} entries",
            details={
                "batch_number": batch_number,
                "processed": processed,
                "created": created,
                "error_count": error_count,
            },
        )

    @staticmethod
    def catchup_finished(
        company_id: UUID,
        processed: int,
        created: int,
        error_count: int,
        cancelled: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATCHUP_FINISHED,
            company_id=company_id,
            entity_type="batch",
            correlation_id=correlation_id,
            description=(
                "Catch-up cancelled" if cancelled
                else f"Catch-up finished: {created} entries created"
            ),
            details={
                "processed": processed,
                "created": created,
                "error_count": error_count,
                "cancelled": cancelled,
            },
        )

    @staticmethod
    def integrity_issue_found(
        company_id: UUID,
        entry_id: UUID,
        entry_type: str,
        variance: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INTEGRITY_ISSUE_FOUND,
            severity=AuditSeverity.WARNING,
            company_id=company_id,
            entity_type="journal_entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Unbalanced {entry_type} entry, variance {variance}",
            details={"entry_type": entry_type, "variance": variance},
        )

    @staticmethod
    def entry_repaired(
        company_id: UUID,
        entry_id: UUID,
        variance_before: str,
        line_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_REPAIRED,
            company_id=company_id,
            entity_type="journal_entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Journal entry rebuilt with {line_count} lines",
            details={"variance_before": variance_before, "line_count": line_count},
        )

    @staticmethod
    def orphan_deleted(
        company_id: UUID,
        entry_id: UUID,
        line_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ORPHAN_DELETED,
            severity=AuditSeverity.WARNING,
            company_id=company_id,
            entity_type="journal_entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Orphaned journal entry deleted ({line_count} lines)",
            details={"line_count": line_count},
        )

    @staticmethod
    def repair_failed(
        company_id: UUID,
        entry_id: UUID,
        error_code: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPAIR_FAILED,
            severity=AuditSeverity.ERROR,
            company_id=company_id,
            entity_type="journal_entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description="Journal entry could not be repaired",
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def drift_detected(
        company_id: UUID,
        period: str,
        category: str,
        difference: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRIFT_DETECTED,
            severity=AuditSeverity.WARNING,
            company_id=company_id,
            entity_type="period",
            correlation_id=correlation_id,
            description=f"Ledger/journal drift in {category} for {period}",
            details={"period": period, "category": category, "difference": difference},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        company_id: Optional[UUID] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            company_id=company_id,
            description=f"System error: {error_type}",
            error_code=error_type,
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_store_error(
        operation: str,
        error_message: str,
        company_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_STORE_ERROR,
            severity=AuditSeverity.ERROR,
            company_id=company_id,
            description=f"Data store error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
