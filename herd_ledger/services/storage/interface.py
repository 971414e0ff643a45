"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the in-memory store for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally narrow - we're not building a full ORM.
Two guarantees matter to the accounting engine:
- A journal entry and its lines are written by ONE call, so no reader
  ever sees an entry without its lines.
- `transaction()` groups several calls into an all-or-nothing unit, and
  `advisory_lock()` keeps two journal writers for one company apart.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from herd_ledger.config.company import CompanySettings
from herd_ledger.models.asset import (
    Asset,
    AssetStatus,
    BalanceAdjustment,
    Disposition,
)
from herd_ledger.models.audit import AuditEvent
from herd_ledger.models.journal import EntryType, JournalEntry, JournalLine


class LedgerStoreInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Every query is scoped by company_id. Any storage implementation must
    implement these methods.
    """

    # -------------------------------------------------------------------------
    # Company settings
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_company_settings(self, company_id: UUID) -> Optional[CompanySettings]:
        """Return the saved settings, or None if the company has none."""
        pass

    @abstractmethod
    async def save_company_settings(self, company_id: UUID, settings: CompanySettings) -> None:
        pass

    # -------------------------------------------------------------------------
    # Assets
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_asset(self, company_id: UUID, asset_id: UUID) -> Optional[Asset]:
        pass

    @abstractmethod
    async def get_asset_by_tag(self, company_id: UUID, tag_number: str) -> Optional[Asset]:
        pass

    @abstractmethod
    async def save_asset(self, asset: Asset) -> Asset:
        """
        Insert a new asset.

        Raises:
            DuplicateError: If the tag number is already used in the company
        """
        pass

    @abstractmethod
    async def update_asset(self, asset: Asset) -> Asset:
        """
        Replace a stored asset.

        Raises:
            NotFoundError: If the asset doesn't exist
        """
        pass

    @abstractmethod
    async def list_assets(
        self,
        company_id: UUID,
        status: Optional[AssetStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Asset]:
        """
        List assets in a stable order (freshen date, then tag number).

        Args:
            company_id: Company scope
            status: Filter by status
            limit: Maximum number of results (None for all)
            offset: Number of results to skip
        """
        pass

    @abstractmethod
    async def count_assets(
        self,
        company_id: UUID,
        status: Optional[AssetStatus] = None,
    ) -> int:
        pass

    # -------------------------------------------------------------------------
    # Journal
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_journal_entry(self, entry: JournalEntry) -> JournalEntry:
        """Insert an entry together with all of its lines."""
        pass

    @abstractmethod
    async def get_journal_entry(self, company_id: UUID, entry_id: UUID) -> Optional[JournalEntry]:
        pass

    @abstractmethod
    async def list_journal_entries(
        self,
        company_id: UUID,
        year: Optional[int] = None,
        month: Optional[int] = None,
        entry_type: Optional[EntryType] = None,
    ) -> list[JournalEntry]:
        """List entries ordered by entry date."""
        pass

    @abstractmethod
    async def replace_journal_lines(
        self,
        company_id: UUID,
        entry_id: UUID,
        lines: list[JournalLine],
        total_amount: Decimal,
    ) -> JournalEntry:
        """
        Atomically swap the lines of an existing entry.

        Raises:
            NotFoundError: If the entry doesn't exist
        """
        pass

    @abstractmethod
    async def delete_journal_entry(self, company_id: UUID, entry_id: UUID) -> bool:
        """Delete an entry and its lines. Returns False if it was absent."""
        pass

    @abstractmethod
    async def asset_has_entry(
        self,
        company_id: UUID,
        asset_id: UUID,
        entry_type: EntryType,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> bool:
        """
        Whether any entry of this type has a line tagged with the asset.

        Used for idempotency checks before composing.
        """
        pass

    # -------------------------------------------------------------------------
    # Dispositions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_disposition(self, disposition: Disposition) -> Disposition:
        """
        Raises:
            DuplicateError: If the asset already has a disposition
        """
        pass

    @abstractmethod
    async def get_disposition_for_asset(
        self, company_id: UUID, asset_id: UUID
    ) -> Optional[Disposition]:
        pass

    @abstractmethod
    async def get_disposition_by_journal_entry(
        self, company_id: UUID, entry_id: UUID
    ) -> Optional[Disposition]:
        pass

    @abstractmethod
    async def update_disposition(self, disposition: Disposition) -> Disposition:
        pass

    @abstractmethod
    async def list_dispositions(
        self,
        company_id: UUID,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Disposition]:
        pass

    # -------------------------------------------------------------------------
    # Balance adjustments
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_adjustment(self, adjustment: BalanceAdjustment) -> BalanceAdjustment:
        pass

    @abstractmethod
    async def list_adjustments(
        self,
        company_id: UUID,
        applied: Optional[bool] = None,
    ) -> list[BalanceAdjustment]:
        pass

    @abstractmethod
    async def mark_adjustment_applied(
        self,
        company_id: UUID,
        adjustment_id: UUID,
        journal_entry_id: UUID,
    ) -> BalanceAdjustment:
        pass

    # -------------------------------------------------------------------------
    # Concurrency
    # -------------------------------------------------------------------------

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """
        All-or-nothing unit of work.

        Usage:
            async with store.transaction():
                await store.save_journal_entry(entry)
                await store.update_asset(asset)

        A nested call joins the enclosing unit.
        """
        pass

    @abstractmethod
    def advisory_lock(self, company_id: UUID, scope: str) -> AbstractAsyncContextManager[None]:
        """
        Non-blocking per-company lock.

        Raises:
            LockUnavailableError: If the lock is already held
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class ExternalStoreError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(ExternalStoreError):
    """Entity not found in storage."""
    pass


class DuplicateError(ExternalStoreError):
    """Attempted to insert a duplicate entity."""
    pass


class LockUnavailableError(ExternalStoreError):
    """Another run already holds the advisory lock."""
    pass
