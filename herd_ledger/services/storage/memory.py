"""
In-Memory Storage Implementation

Used by the test suite and for local runs without a database.

TRADEOFFS:
- Data lives for the lifetime of the process only
- Transactions are serialized by one asyncio lock and rolled back by
  restoring a snapshot of the tables
- Filtering and paging happen in Python

Stored objects are never mutated in place. Every write replaces the
stored object with a fresh copy, so a snapshot of the table dicts is
enough to roll back.
"""

import asyncio
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import date
from decimal import Decimal
from typing import AsyncIterator, Optional
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
from herd_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStoreInterface,
    LockUnavailableError,
    NotFoundError,
)


_TABLES = ("_settings", "_assets", "_entries", "_dispositions", "_adjustments")


class InMemoryLedgerStore(LedgerStoreInterface):
    """Dict-backed ledger store."""

    def __init__(self):
        self._settings: dict[UUID, CompanySettings] = {}
        self._assets: dict[UUID, Asset] = {}
        self._entries: dict[UUID, JournalEntry] = {}
        self._dispositions: dict[UUID, Disposition] = {}
        self._adjustments: dict[UUID, BalanceAdjustment] = {}

        self._held_locks: set[tuple[UUID, str]] = set()
        self._transaction_lock = asyncio.Lock()
        self._in_transaction: ContextVar[bool] = ContextVar(
            f"in_transaction_{id(self)}", default=False
        )

    # -------------------------------------------------------------------------
    # Company settings
    # -------------------------------------------------------------------------

    async def get_company_settings(self, company_id: UUID) -> Optional[CompanySettings]:
        settings = self._settings.get(company_id)
        return settings.model_copy(deep=True) if settings else None

    async def save_company_settings(self, company_id: UUID, settings: CompanySettings) -> None:
        self._settings[company_id] = settings.model_copy(deep=True)

    # -------------------------------------------------------------------------
    # Assets
    # -------------------------------------------------------------------------

    async def get_asset(self, company_id: UUID, asset_id: UUID) -> Optional[Asset]:
        asset = self._assets.get(asset_id)
        if asset is None or asset.company_id != company_id:
            return None
        return asset.model_copy(deep=True)

    async def get_asset_by_tag(self, company_id: UUID, tag_number: str) -> Optional[Asset]:
        for asset in self._assets.values():
            if asset.company_id == company_id and asset.tag_number == tag_number:
                return asset.model_copy(deep=True)
        return None

    async def save_asset(self, asset: Asset) -> Asset:
        if asset.id in self._assets:
            raise DuplicateError(f"Asset {asset.id} already exists")
        if await self.get_asset_by_tag(asset.company_id, asset.tag_number):
            raise DuplicateError(f"Tag number {asset.tag_number} is already in use")
        self._assets[asset.id] = asset.model_copy(deep=True)
        return asset

    async def update_asset(self, asset: Asset) -> Asset:
        stored = self._assets.get(asset.id)
        if stored is None or stored.company_id != asset.company_id:
            raise NotFoundError(f"Asset {asset.id} not found")
        self._assets[asset.id] = asset.model_copy(deep=True)
        return asset

    async def list_assets(
        self,
        company_id: UUID,
        status: Optional[AssetStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Asset]:
        matches = [
            asset for asset in self._assets.values()
            if asset.company_id == company_id
            and (status is None or asset.status == status)
        ]
        matches.sort(key=lambda a: (a.freshen_date, a.tag_number))
        end = None if limit is None else offset + limit
        return [asset.model_copy(deep=True) for asset in matches[offset:end]]

    async def count_assets(
        self,
        company_id: UUID,
        status: Optional[AssetStatus] = None,
    ) -> int:
        return sum(
            1 for asset in self._assets.values()
            if asset.company_id == company_id
            and (status is None or asset.status == status)
        )

    # -------------------------------------------------------------------------
    # Journal
    # -------------------------------------------------------------------------

    async def save_journal_entry(self, entry: JournalEntry) -> JournalEntry:
        if entry.id in self._entries:
            raise DuplicateError(f"Journal entry {entry.id} already exists")
        self._entries[entry.id] = entry.model_copy(deep=True)
        return entry

    async def get_journal_entry(self, company_id: UUID, entry_id: UUID) -> Optional[JournalEntry]:
        entry = self._entries.get(entry_id)
        if entry is None or entry.company_id != company_id:
            return None
        return entry.model_copy(deep=True)

    async def list_journal_entries(
        self,
        company_id: UUID,
        year: Optional[int] = None,
        month: Optional[int] = None,
        entry_type: Optional[EntryType] = None,
    ) -> list[JournalEntry]:
        matches = [
            entry for entry in self._entries.values()
            if entry.company_id == company_id
            and (year is None or entry.year == year)
            and (month is None or entry.month == month)
            and (entry_type is None or entry.entry_type == entry_type)
        ]
        matches.sort(key=lambda e: (e.entry_date, e.created_at))
        return [entry.model_copy(deep=True) for entry in matches]

    async def replace_journal_lines(
        self,
        company_id: UUID,
        entry_id: UUID,
        lines: list[JournalLine],
        total_amount: Decimal,
    ) -> JournalEntry:
        stored = self._entries.get(entry_id)
        if stored is None or stored.company_id != company_id:
            raise NotFoundError(f"Journal entry {entry_id} not found")
        replaced = JournalEntry(
            **stored.model_dump(exclude={"lines", "total_amount"}),
            lines=[line.model_copy(deep=True) for line in lines],
            total_amount=total_amount,
        )
        self._entries[entry_id] = replaced
        return replaced.model_copy(deep=True)

    async def delete_journal_entry(self, company_id: UUID, entry_id: UUID) -> bool:
        stored = self._entries.get(entry_id)
        if stored is None or stored.company_id != company_id:
            return False
        del self._entries[entry_id]
        return True

    async def asset_has_entry(
        self,
        company_id: UUID,
        asset_id: UUID,
        entry_type: EntryType,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> bool:
        for entry in self._entries.values():
            if (
                entry.company_id == company_id
                and entry.entry_type == entry_type
                and (year is None or entry.year == year)
                and (month is None or entry.month == month)
                and any(line.asset_id == asset_id for line in entry.lines)
            ):
                return True
        return False

    # -------------------------------------------------------------------------
    # Dispositions
    # -------------------------------------------------------------------------

    async def save_disposition(self, disposition: Disposition) -> Disposition:
        existing = await self.get_disposition_for_asset(
            disposition.company_id, disposition.asset_id
        )
        if existing is not None:
            raise DuplicateError(
                f"Asset {disposition.asset_id} already has a disposition"
            )
        self._dispositions[disposition.id] = disposition.model_copy(deep=True)
        return disposition

    async def get_disposition_for_asset(
        self, company_id: UUID, asset_id: UUID
    ) -> Optional[Disposition]:
        for disposition in self._dispositions.values():
            if disposition.company_id == company_id and disposition.asset_id == asset_id:
                return disposition.model_copy(deep=True)
        return None

    async def get_disposition_by_journal_entry(
        self, company_id: UUID, entry_id: UUID
    ) -> Optional[Disposition]:
        for disposition in self._dispositions.values():
            if disposition.company_id == company_id and disposition.journal_entry_id == entry_id:
                return disposition.model_copy(deep=True)
        return None

    async def update_disposition(self, disposition: Disposition) -> Disposition:
        stored = self._dispositions.get(disposition.id)
        if stored is None or stored.company_id != disposition.company_id:
            raise NotFoundError(f"Disposition {disposition.id} not found")
        self._dispositions[disposition.id] = disposition.model_copy(deep=True)
        return disposition

    async def list_dispositions(
        self,
        company_id: UUID,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Disposition]:
        matches = [
            d for d in self._dispositions.values()
            if d.company_id == company_id
            and (date_from is None or d.disposition_date >= date_from)
            and (date_to is None or d.disposition_date <= date_to)
        ]
        matches.sort(key=lambda d: d.disposition_date)
        return [d.model_copy(deep=True) for d in matches]

    # -------------------------------------------------------------------------
    # Balance adjustments
    # -------------------------------------------------------------------------

    async def save_adjustment(self, adjustment: BalanceAdjustment) -> BalanceAdjustment:
        self._adjustments[adjustment.id] = adjustment.model_copy(deep=True)
        return adjustment

    async def list_adjustments(
        self,
        company_id: UUID,
        applied: Optional[bool] = None,
    ) -> list[BalanceAdjustment]:
        matches = [
            a for a in self._adjustments.values()
            if a.company_id == company_id
            and (applied is None or a.applied == applied)
        ]
        matches.sort(key=lambda a: a.created_at)
        return [a.model_copy(deep=True) for a in matches]

    async def mark_adjustment_applied(
        self,
        company_id: UUID,
        adjustment_id: UUID,
        journal_entry_id: UUID,
    ) -> BalanceAdjustment:
        stored = self._adjustments.get(adjustment_id)
        if stored is None or stored.company_id != company_id:
            raise NotFoundError(f"Adjustment {adjustment_id} not found")
        updated = stored.model_copy(
            update={"applied": True, "applied_journal_entry_id": journal_entry_id}
        )
        self._adjustments[adjustment_id] = updated
        return updated.model_copy(deep=True)

    # -------------------------------------------------------------------------
    # Concurrency
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._in_transaction.get():
            yield
            return

        async with self._transaction_lock:
            snapshot = {name: dict(getattr(self, name)) for name in _TABLES}
            token = self._in_transaction.set(True)
            try:
                yield
            except BaseException:
                for name, table in snapshot.items():
                    setattr(self, name, table)
                raise
            finally:
                self._in_transaction.reset(token)

    @asynccontextmanager
    async def advisory_lock(self, company_id: UUID, scope: str) -> AsyncIterator[None]:
        key = (company_id, scope)
        if key in self._held_locks:
            raise LockUnavailableError(
                f"A {scope} run is already in progress for company {company_id}"
            )
        self._held_locks.add(key)
        try:
            yield
        finally:
            self._held_locks.discard(key)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_entity(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
