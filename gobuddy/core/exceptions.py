"""
Domain errors raised by the settlement, pricing and rating code.
"""


class GoBuddyError(Exception):
    """Base class for all GoBuddy domain errors."""


class InvalidDateError(GoBuddyError):
    """A transaction timestamp is missing or cannot be parsed."""


class ValidationError(GoBuddyError, ValueError):
    """Negative price/quantity or otherwise malformed pricing input."""


class UniquenessConflict(GoBuddyError):
    """An insert hit a unique constraint (another writer got there first)."""

    def __init__(self, table: str, row: dict, original: Exception = None):
        self.table = table
        self.row = row
        self.original = original
        super().__init__(f"Unique constraint violated on '{table}'")


class ReconciliationError(GoBuddyError):
    """The store reported a conflict but the conflicting row cannot be read back."""
