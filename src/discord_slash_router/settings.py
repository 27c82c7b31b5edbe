"""Router configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

EditFailurePolicy = Literal["continue", "abort"]

DISCORD_BASE_URL = "https://discord.com/api/v10"


class RouterSettings(BaseSettings):
    """Settings shared by the router, its Discord client and edit bridges.

    Values come from keyword arguments first, then ``DISCORD_*`` environment
    variables (``DISCORD_APPLICATION_ID``, ``DISCORD_PUBLIC_KEY``,
    ``DISCORD_BOT_TOKEN``, ``DISCORD_GUILD_ID``, ...).
    """

    model_config = SettingsConfigDict(
        env_prefix="DISCORD_",
        extra="ignore",
        frozen=True,
        str_strip_whitespace=True,
    )

    application_id: str = ""
    public_key: str = ""
    bot_token: str = ""
    token_prefix: str = "Bot"
    # Comma-separated guild ids; unset registers commands globally.
    guild_id: str | None = None
    endpoint: str = "/"
    rate_limit_ms: int = 1000
    character_limit: int = 2000
    serve_only: bool = False
    delete_commands_on_shutdown: bool = False
    api_base_url: str = DISCORD_BASE_URL
    edit_failure_policy: EditFailurePolicy = "continue"
    stream_buffer_size: int = 16
    request_timeout: float = 30.0

    @field_validator("endpoint")
    @classmethod
    def _normalize_endpoint(cls, value: str) -> str:
        if not value.startswith("/"):
            value = f"/{value}"
        return value

    @field_validator("rate_limit_ms", "character_limit", "stream_buffer_size")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @property
    def guild_ids(self) -> tuple[str, ...]:
        if not self.guild_id:
            return ()
        return tuple(part.strip() for part in self.guild_id.split(",") if part.strip())

    @property
    def rate_limit(self) -> float:
        """Rate limit window in seconds."""
        return self.rate_limit_ms / 1000.0
