from .roster_client import DiscordApiError, DiscordRosterClient

__all__ = ["DiscordApiError", "DiscordRosterClient"]
