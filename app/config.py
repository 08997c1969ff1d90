from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from app.features.snapshot.domain.badges import BadgeKind, BadgeRoleMap

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Supabase settings (the ledger lives in the Supabase Postgres `users` table)
    SUPABASE_DB_URL: str = ""

    # Discord settings
    DISCORD_BOT_TOKEN: str = ""
    DISCORD_GUILD_ID: str = ""
    DISCORD_API_BASE_URL: str = "https://discord.com/api/v10"

    # =================================================================
    # BADGE ROLE IDS - one Discord role id per tracked badge
    # =================================================================
    BADGE_ROLE_WL: str = ""
    BADGE_ROLE_WL_WINNER: str = ""
    BADGE_ROLE_ML: str = ""
    BADGE_ROLE_ML_WINNER: str = ""
    BADGE_ROLE_FREE_MINT: str = ""
    BADGE_ROLE_FREE_MINT_WINNER: str = ""

    # =================================================================
    # SNAPSHOT SETTINGS
    # =================================================================
    SNAPSHOT_LEDGER_PAGE_SIZE: int = 1000
    SNAPSHOT_ROSTER_PAGE_SIZE: int = 1000  # Discord caps member listing at 1000
    SNAPSHOT_BATCH_DELAY_SECONDS: float = 1.0
    SNAPSHOT_RECONCILE_BATCH_SIZE: int = 50
    SNAPSHOT_RECONCILE_CONCURRENCY: int = 10
    SNAPSHOT_INCLUDE_IDENTITY_ID: bool = True
    SNAPSHOT_INCLUDE_POINTS: bool = False
    SNAPSHOT_OUTPUT_DIR: str = "snapshots"

    # =================================================================
    # DATABASE POOL SETTINGS - Simple and configurable
    # =================================================================
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 4
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def badge_role_map(self) -> BadgeRoleMap:
        """
        Build the badge -> Discord role id map from the BADGE_ROLE_* settings.

        Raises:
            ValueError: If a role id is missing or shared by two badges
        """
        return BadgeRoleMap.from_mapping(
            {
                BadgeKind.WL: self.BADGE_ROLE_WL,
                BadgeKind.WL_WINNER: self.BADGE_ROLE_WL_WINNER,
                BadgeKind.ML: self.BADGE_ROLE_ML,
                BadgeKind.ML_WINNER: self.BADGE_ROLE_ML_WINNER,
                BadgeKind.FREE_MINT: self.BADGE_ROLE_FREE_MINT,
                BadgeKind.FREE_MINT_WINNER: self.BADGE_ROLE_FREE_MINT_WINNER,
            }
        )

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            # Snapshot runs are one-shot; keep local pools small
            config.update({"min_size": 1, "max_size": 2, "timeout": 15.0})

        return config


settings = Settings()
