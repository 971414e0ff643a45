"""
Herd Ledger - Source Package

Accounting engine for depreciable livestock: acquisitions, monthly
depreciation, disposals and the balanced double-entry journal behind them.

DESIGN PRINCIPLES:
1. Every journal entry balances to the cent, or it is not written
2. One authoritative calculation per number (depreciation, balances)
3. Batch work is bounded, idempotent and resumable
4. No silent corrections: problems are reported, never fudged
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Herd Ledger Team"
