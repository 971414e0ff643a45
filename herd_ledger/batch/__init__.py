"""Batch processing package."""

from herd_ledger.batch.catchup import BatchCatchupProcessor, default_through
from herd_ledger.batch.iterator import BatchIterator

__all__ = ["BatchCatchupProcessor", "BatchIterator", "default_through"]
