"""
Pipeline stages for the community snapshot.

Run in order: dedup -> classification -> orphan detection -> reverse
reconciliation -> report assembly. Each stage consumes the complete output
of the previous one.
"""

from .classification import ClassificationEngine
from .dedup import deduplicate_records
from .ledger_pager import LedgerPager
from .orphans import OrphanDetector
from .reconciliation import ReverseReconciler
from .report import assemble_report, render_report, report_header
from .roster_fetcher import BulkRosterFetcher, MemberResolver, RosterSource

__all__ = [
    "BulkRosterFetcher",
    "ClassificationEngine",
    "LedgerPager",
    "MemberResolver",
    "OrphanDetector",
    "ReverseReconciler",
    "RosterSource",
    "assemble_report",
    "deduplicate_records",
    "render_report",
    "report_header",
]
