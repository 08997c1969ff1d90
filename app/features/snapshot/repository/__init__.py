"""
Repository layer for the snapshot feature.
"""

from .ledger_repository import LedgerRepository, LedgerStore, row_to_record

__all__ = ["LedgerRepository", "LedgerStore", "row_to_record"]
