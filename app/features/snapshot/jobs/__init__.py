"""
Background jobs for the snapshot feature.
"""

from .snapshot_job import run_snapshot_job

__all__ = ["run_snapshot_job"]
