"""Thin Discord REST client for command registration and interaction edits."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx
import msgspec

from .errors import RegistrationFailure
from .logging import get_logger
from .settings import RouterSettings
from .types import Command, Message

logger = get_logger(__name__)

ORIGINAL_MESSAGE_ID = "@original"

FileTuple = tuple[str, bytes, str]


class DiscordClient:
    """Discord REST calls used by the router.

    Edit calls return the raw ``httpx.Response`` so that callers can decide
    what a given status means for their interaction.
    """

    def __init__(
        self,
        settings: RouterSettings,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._http_client = http_client or httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=settings.request_timeout,
        )
        self._owns_http_client = http_client is None

    @property
    def application_id(self) -> str:
        return self._settings.application_id

    def _authorization(self) -> dict[str, str]:
        prefix = self._settings.token_prefix or "Bot"
        return {"Authorization": f"{prefix} {self._settings.bot_token}"}

    def commands_path(self, guild_id: str | None = None) -> str:
        if guild_id:
            return f"applications/{self.application_id}/guilds/{guild_id}/commands"
        return f"applications/{self.application_id}/commands"

    def message_path(self, token: str, message_id: str = ORIGINAL_MESSAGE_ID) -> str:
        return f"webhooks/{self.application_id}/{token}/messages/{message_id}"

    async def bulk_overwrite_commands(
        self,
        commands: Sequence[Command],
        *,
        guild_id: str | None = None,
    ) -> list[Any]:
        """Replace every command in a scope with ``commands``.

        Raises:
            RegistrationFailure: Discord answered with an error status.
        """
        response = await self._http_client.put(
            self.commands_path(guild_id),
            content=msgspec.json.encode(list(commands)),
            headers={**self._authorization(), "Content-Type": "application/json"},
        )
        if response.is_error:
            raise RegistrationFailure(
                guild_id, response.status_code, response.reason_phrase
            )
        try:
            return response.json()
        except ValueError:
            return []

    async def edit_message(
        self,
        token: str,
        message: Message,
        *,
        message_id: str = ORIGINAL_MESSAGE_ID,
        file: FileTuple | None = None,
    ) -> httpx.Response:
        """PATCH an interaction response message.

        With ``file`` set the body is sent as multipart form data: the JSON
        payload under ``payload_json`` and the blob under ``files[0]``.
        """
        path = self.message_path(token, message_id)
        payload = msgspec.json.encode(message)
        if file is None:
            return await self._http_client.patch(
                path,
                content=payload,
                headers={"Content-Type": "application/json"},
            )
        return await self._http_client.patch(
            path,
            data={"payload_json": payload.decode()},
            files={"files[0]": file},
        )

    async def close(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()
