"""Import-record validation package."""

from herd_ledger.validation.validator import AssetRecordValidator

__all__ = ["AssetRecordValidator"]
