"""
Domain Errors

Storage failures live in `herd_ledger.services.storage.interface`
(ExternalStoreError and friends). Everything raised by the accounting
engine itself derives from LedgerError.
"""

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base exception for accounting engine errors."""
    pass


class InvalidStateError(LedgerError):
    """Operation not allowed in the entity's current state."""
    pass


class InvalidInputError(LedgerError):
    """Caller supplied values that violate a business rule."""

    def __init__(self, message: str, issues: Optional[list[str]] = None):
        super().__init__(message)
        self.issues = issues or []


class UnbalancedEntryError(LedgerError):
    """
    Composition produced lines whose debits and credits differ.

    This is an internal invariant violation. An entry that raises this
    is never persisted.
    """

    def __init__(self, message: str, debits: Decimal, credits: Decimal):
        super().__init__(message)
        self.debits = debits
        self.credits = credits

    @property
    def variance(self) -> Decimal:
        return abs(self.debits - self.credits)


class BatchLimitExceededError(LedgerError):
    """A batch loop hit its hard iteration guard without terminating."""
    pass
