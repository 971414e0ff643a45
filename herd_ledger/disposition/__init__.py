"""Disposition processing package."""

from herd_ledger.disposition.processor import DispositionProcessor, DispositionRequest

__all__ = ["DispositionProcessor", "DispositionRequest"]
