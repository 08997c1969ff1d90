"""
Exceptions raised by the snapshot feature.
"""


class SnapshotError(Exception):
    """Base exception for snapshot operations."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class LedgerStoreError(SnapshotError):
    """A ledger read failed."""


class SnapshotSourceUnavailableError(SnapshotError):
    """The ledger or the roster could not be read at all; the run is aborted."""

    def __init__(self, message: str, source: str, operation: str | None = None):
        super().__init__(message, operation=operation, recoverable=False)
        self.source = source
