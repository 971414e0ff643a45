"""
Audit Logger

DESIGN DECISION: Every ledger mutation and every batch run is logged.
This provides:
1. Complete traceability from journal entries to the operation behind them
2. Debugging capability for batch errors
3. A permanent record of every repair and deletion

The audit logger:
- Shares the async signature of the store it writes to
- Never raises on a storage failure; the accounting flow continues
- Threads one correlation id through the events of an operation
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from herd_ledger.config.settings import get_settings
from herd_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from herd_ledger.services.storage import AuditStorageInterface


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for local JSON logging."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, log_level))
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(get_settings().app.log_level)


class AuditLogger:
    """
    Writes each ledger event to the structlog stream and, when one is
    configured, to audit storage.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Audit event store. Without one, events only reach
                     the structlog stream.
        """
        self._storage = storage
        self._logger = structlog.get_logger("herd_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Write one event.

        Returns False when the storage write failed, True otherwise.
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Reported, never raised
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_asset_registered(
        self,
        company_id: UUID,
        asset_id: UUID,
        tag_number: str,
        purchase_price: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.asset_registered(
            company_id=company_id,
            asset_id=asset_id,
            tag_number=tag_number,
            purchase_price=purchase_price,
            correlation_id=correlation_id,
        ))

    async def log_asset_rejected(
        self,
        company_id: UUID,
        tag_number: str,
        errors: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.asset_rejected(
            company_id=company_id,
            tag_number=tag_number,
            errors=errors,
            correlation_id=correlation_id,
        ))

    async def log_depreciation_posted(
        self,
        company_id: UUID,
        entry_id: UUID,
        period: str,
        assets_charged: int,
        total_amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.depreciation_posted(
            company_id=company_id,
            entry_id=entry_id,
            period=period,
            assets_charged=assets_charged,
            total_amount=total_amount,
            correlation_id=correlation_id,
        ))

    async def log_disposition_processed(
        self,
        company_id: UUID,
        asset_id: UUID,
        disposition_type: str,
        final_book_value: str,
        gain_loss: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.disposition_processed(
            company_id=company_id,
            asset_id=asset_id,
            disposition_type=disposition_type,
            final_book_value=final_book_value,
            gain_loss=gain_loss,
            correlation_id=correlation_id,
        ))

    async def log_disposition_failed(
        self,
        company_id: UUID,
        asset_id: UUID,
        error_code: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.disposition_failed(
            company_id=company_id,
            asset_id=asset_id,
            error_code=error_code,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_catchup_batch(
        self,
        company_id: UUID,
        batch_number: int,
        processed: int,
        created: int,
        error_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log one finished catch-up batch."""
        await self.log(AuditEventBuilder.catchup_batch_completed(
            company_id=company_id,
            batch_number=batch_number,
            processed=processed,
            created=created,
            error_count=error_count,
            correlation_id=correlation_id,
        ))

    async def log_catchup_finished(
        self,
        company_id: UUID,
        processed: int,
        created: int,
        error_count: int,
        cancelled: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.catchup_finished(
            company_id=company_id,
            processed=processed,
            created=created,
            error_count=error_count,
            cancelled=cancelled,
            correlation_id=correlation_id,
        ))

    async def log_integrity_issue(
        self,
        company_id: UUID,
        entry_id: UUID,
        entry_type: str,
        variance: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.integrity_issue_found(
            company_id=company_id,
            entry_id=entry_id,
            entry_type=entry_type,
            variance=variance,
            correlation_id=correlation_id,
        ))

    async def log_entry_repaired(
        self,
        company_id: UUID,
        entry_id: UUID,
        variance_before: str,
        line_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.entry_repaired(
            company_id=company_id,
            entry_id=entry_id,
            variance_before=variance_before,
            line_count=line_count,
            correlation_id=correlation_id,
        ))

    async def log_orphan_deleted(
        self,
        company_id: UUID,
        entry_id: UUID,
        line_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.orphan_deleted(
            company_id=company_id,
            entry_id=entry_id,
            line_count=line_count,
            correlation_id=correlation_id,
        ))

    async def log_repair_failed(
        self,
        company_id: UUID,
        entry_id: UUID,
        error_code: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.repair_failed(
            company_id=company_id,
            entry_id=entry_id,
            error_code=error_code,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_drift(
        self,
        company_id: UUID,
        period: str,
        category: str,
        difference: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.drift_detected(
            company_id=company_id,
            period=period,
            category=category,
            difference=difference,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        company_id: Optional[UUID] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            company_id=company_id,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_store_error(
        self,
        operation: str,
        error_message: str,
        company_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a data store failure."""
        await self.log(AuditEventBuilder.external_store_error(
            operation=operation,
            error_message=error_message,
            company_id=company_id,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    New correlation id for one top-level operation.

    Every event written on behalf of that operation (a catch-up run and
    its batches, a repair and its entries) carries the same id.
    """
    return uuid4()
