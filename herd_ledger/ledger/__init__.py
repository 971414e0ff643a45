"""Asset register package."""

from herd_ledger.ledger.asset_ledger import AssetLedger

__all__ = ["AssetLedger"]
