# app/models/api/discord_response.py
from pydantic import BaseModel, ConfigDict, Field

from app.features.snapshot.domain import Identity


class DiscordUserPayload(BaseModel):
    """`user` object embedded in a guild member payload."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    username: str = ""
    global_name: str | None = None
    bot: bool = False


class DiscordMemberPayload(BaseModel):
    """Guild member object returned by GET /guilds/{id}/members[/{user_id}]."""

    model_config = ConfigDict(extra="ignore")

    user: DiscordUserPayload
    nick: str | None = None
    roles: list[str] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.nick or self.user.global_name or self.user.username or self.user.id

    def to_identity(self) -> Identity:
        return Identity(
            identity_id=self.user.id,
            display_name=self.display_name,
            role_ids=frozenset(self.roles),
        )


class DiscordRateLimitPayload(BaseModel):
    """Body of a 429 response."""

    model_config = ConfigDict(extra="ignore")

    retry_after: float = 1.0
    global_: bool = Field(default=False, alias="global")
