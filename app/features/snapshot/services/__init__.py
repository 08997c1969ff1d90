"""
Service layer for the snapshot feature.
"""

from .snapshot_service import SnapshotService

__all__ = ["SnapshotService"]
