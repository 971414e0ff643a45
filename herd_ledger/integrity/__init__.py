"""Journal integrity package."""

from herd_ledger.integrity.repair import IntegrityRepair, MissingSourceError, find_issues

__all__ = ["IntegrityRepair", "MissingSourceError", "find_issues"]
