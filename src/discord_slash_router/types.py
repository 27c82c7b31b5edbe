"""Wire types for Discord interactions, commands and messages."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

import msgspec


class InteractionType(enum.IntEnum):
    PING = 1
    APPLICATION_COMMAND = 2
    MESSAGE_COMPONENT = 3
    APPLICATION_COMMAND_AUTOCOMPLETE = 4
    MODAL_SUBMIT = 5


class InteractionResponseType(enum.IntEnum):
    PONG = 1
    CHANNEL_MESSAGE_WITH_SOURCE = 4
    DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE = 5


class ApplicationCommandOptionType(enum.IntEnum):
    STRING = 3


class ComponentType(enum.IntEnum):
    ACTION_ROW = 1
    BUTTON = 2


class ButtonStyle(enum.IntEnum):
    PRIMARY = 1
    LINK = 5


class InteractionState(enum.Enum):
    """Lifecycle of a single inbound interaction."""

    RECEIVED = "received"
    VALIDATED = "validated"
    REJECTED = "rejected"
    PONG = "pong"
    COMMAND_RESOLVED = "command_resolved"
    ACK_SENT = "ack_sent"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"


# --- Inbound ---


class User(msgspec.Struct):
    id: str
    username: str | None = None


class Member(msgspec.Struct):
    user: User | None = None


class InteractionOption(msgspec.Struct):
    name: str
    value: Any = None
    type: int | None = None


class InteractionData(msgspec.Struct):
    name: str = ""
    options: list[InteractionOption] | None = None


class Interaction(msgspec.Struct):
    """Interaction payload as posted by Discord.

    ``type`` stays a plain int so that unknown interaction types still decode
    and can be rejected by the dispatcher instead of the decoder.
    """

    type: int
    token: str = ""
    id: str | None = None
    application_id: str | None = None
    data: InteractionData | None = None
    guild_id: str | None = None
    channel_id: str | None = None
    member: Member | None = None
    user: User | None = None
    locale: str | None = None
    guild_locale: str | None = None

    @property
    def user_id(self) -> str | None:
        if self.member is not None and self.member.user is not None:
            return self.member.user.id
        if self.user is not None:
            return self.user.id
        return None


# --- Outbound ---


class CommandOption(msgspec.Struct, frozen=True):
    name: str
    description: str
    required: bool
    type: int = ApplicationCommandOptionType.STRING


class Command(msgspec.Struct, frozen=True):
    name: str
    description: str
    options: tuple[CommandOption, ...] = ()


class Component(msgspec.Struct, omit_defaults=True):
    type: int
    style: int | None = None
    label: str | None = None
    custom_id: str | None = None
    url: str | None = None
    disabled: bool = False
    components: list[Component] | None = None


class Attachment(msgspec.Struct, omit_defaults=True):
    id: int
    filename: str
    ephemeral: bool
    content_type: str | None = None
    size: int | None = None
    description: str | None = None


class Message(msgspec.Struct):
    content: str = ""
    embeds: list[Any] = []
    components: list[Component] = []
    attachments: list[Attachment] = []


@dataclass(frozen=True, slots=True)
class ConnInfo:
    """Addresses of the inbound connection, as reported by the server."""

    local_addr: tuple[str, int] | None = None
    remote_addr: tuple[str, int] | None = None
