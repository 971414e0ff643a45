"""Journal composition and posting package."""

from herd_ledger.journal.composer import AdjustmentPair, JournalComposer
from herd_ledger.journal.posting import MonthlyDepreciationPoster

__all__ = ["AdjustmentPair", "JournalComposer", "MonthlyDepreciationPoster"]
