"""
CSV rendering of the snapshot rows.

Fields are joined with commas without quoting; identity ids and wallet
addresses never contain commas.
"""

from collections.abc import Iterable
from decimal import Decimal

from app.features.snapshot.domain import (
    BADGE_ORDER,
    ClassifiedRow,
    RunState,
    SnapshotResult,
    SnapshotStats,
)

FIELD_SEPARATOR = ","
LINE_SEPARATOR = "\n"


def report_header(include_identity_id: bool, include_points: bool = False) -> list[str]:
    columns: list[str] = []
    if include_identity_id:
        columns.append("identity_id")
    columns.append("wallet_address")
    if include_points:
        columns.append("points")
    columns.extend(kind.column for kind in BADGE_ORDER)
    return columns


def format_points(points: Decimal) -> str:
    if points == points.to_integral_value():
        return str(int(points))
    return format(points.normalize(), "f")


def render_row(
    row: ClassifiedRow, include_identity_id: bool, include_points: bool = False
) -> str:
    fields: list[str] = []
    if include_identity_id:
        fields.append(row.identity_id)
    fields.append(row.wallet_address)
    if include_points:
        fields.append(format_points(row.points))
    fields.extend(row.flags.render())
    return FIELD_SEPARATOR.join(fields)


def render_report(
    rows: Iterable[ClassifiedRow], include_identity_id: bool, include_points: bool = False
) -> str:
    lines = [FIELD_SEPARATOR.join(report_header(include_identity_id, include_points))]
    lines.extend(render_row(row, include_identity_id, include_points) for row in rows)
    return LINE_SEPARATOR.join(lines)


def assemble_report(
    state: RunState,
    stats: SnapshotStats,
    *,
    include_identity_id: bool,
    include_points: bool = False,
) -> SnapshotResult:
    stats.total_processed = len(state.processed_ids)
    return SnapshotResult(
        report=render_report(state.rows, include_identity_id, include_points),
        stats=stats,
        total_processed=stats.total_processed,
        row_count=len(state.rows),
    )
