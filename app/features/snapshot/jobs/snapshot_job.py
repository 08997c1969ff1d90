"""
One-shot snapshot job.

Opens the ledger pool and the Discord client, generates the membership
snapshot, writes it to SNAPSHOT_OUTPUT_DIR and logs the role statistics.
"""

from datetime import UTC, datetime
from pathlib import Path

from app.config import settings
from app.db.pool import db_pool
from app.features.snapshot.domain import BADGE_ORDER, SnapshotStats
from app.features.snapshot.services.snapshot_service import SnapshotService
from app.infrastructure.observability.logging import get_logger
from app.services.discord.roster_client import DiscordRosterClient

logger = get_logger(__name__)


def snapshot_filename(now: datetime | None = None) -> str:
    """snapshot_<ISO timestamp with ':' and '.' replaced by '-'>.csv"""
    moment = (now or datetime.now(UTC)).astimezone(UTC)
    stamp = moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"
    return f"snapshot_{stamp.replace(':', '-').replace('.', '-')}.csv"


def save_report(content: str, filename: str, output_dir: str | Path) -> Path:
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_text(content, encoding="utf-8")
    return path


def log_role_statistics(stats: SnapshotStats) -> None:
    for kind in BADGE_ORDER:
        logger.info(
            "Role statistics",
            badge=kind.name,
            total=stats.totals[kind],
            unverified=stats.no_wallet[kind],
        )
    for kind in BADGE_ORDER:
        if stats.unverified[kind]:
            logger.info(
                "Unverified users",
                badge=kind.name,
                users=stats.unverified[kind],
            )


async def _log_progress(message: str) -> None:
    logger.info("Snapshot progress", message=message)


async def run_snapshot_job(community_id: str | None = None) -> Path:
    """
    Generate and save a snapshot for the configured guild.

    Returns:
        Path of the written CSV file
    """
    guild_id = community_id or settings.DISCORD_GUILD_ID
    if not guild_id:
        raise ValueError("DISCORD_GUILD_ID is not configured")

    started_at = datetime.now(UTC)
    await db_pool.initialize()
    try:
        async with DiscordRosterClient(
            settings.DISCORD_BOT_TOKEN, settings.DISCORD_API_BASE_URL
        ) as roster_client:
            service = SnapshotService.from_settings(roster_client)
            result = await service.generate_snapshot(
                guild_id,
                include_identity_id=settings.SNAPSHOT_INCLUDE_IDENTITY_ID,
                include_points=settings.SNAPSHOT_INCLUDE_POINTS,
                progress=_log_progress,
            )
    finally:
        await db_pool.close()

    path = save_report(result.report, snapshot_filename(started_at), settings.SNAPSHOT_OUTPUT_DIR)
    log_role_statistics(result.stats)
    logger.info(
        "Snapshot complete",
        path=str(path),
        total_processed=result.total_processed,
        row_count=result.row_count,
        reconciled=result.stats.reconciled,
        duration_seconds=round((datetime.now(UTC) - started_at).total_seconds(), 2),
    )
    return path
