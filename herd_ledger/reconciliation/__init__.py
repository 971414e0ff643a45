"""Reconciliation package."""

from herd_ledger.reconciliation.engine import (
    ReconciliationEngine,
    build_reconciliation_rows,
    fiscal_year_start,
)

__all__ = ["ReconciliationEngine", "build_reconciliation_rows", "fiscal_year_start"]
