"""Slash command schemas derived from routes."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

import httpx

from .errors import RegistrationFailure, RoutingError
from .logging import get_logger
from .routes import Route, is_valid_name
from .types import Command, CommandOption

if TYPE_CHECKING:
    from .client import DiscordClient
    from .settings import RouterSettings

logger = get_logger(__name__)


def command_from_route(route: Route) -> Command | None:
    """Build the slash command schema for ``route``.

    Path parameters become required options and query keys optional ones,
    so required options always precede optional options. Returns None (and
    logs) when the command name or an option name is not a valid Discord
    identifier.
    """
    pattern = route.pattern
    name = pattern.name
    if not is_valid_name(name):
        logger.error("commands.invalid_name", name=name, route=pattern.pattern)
        return None

    options: list[CommandOption] = []
    for option_name in pattern.required:
        options.append(
            CommandOption(name=option_name, description=option_name, required=True)
        )
    for option_name in pattern.optional:
        options.append(
            CommandOption(name=option_name, description=option_name, required=False)
        )
    for option in options:
        if not is_valid_name(option.name):
            logger.error(
                "commands.invalid_option_name",
                name=name,
                option=option.name,
                route=pattern.pattern,
            )
            return None

    return Command(
        name=name,
        description=route.description or name,
        options=tuple(options),
    )


class CommandRegistry:
    """Immutable mapping of command names to routes, built once at startup."""

    def __init__(self, routes: Iterable[Route]) -> None:
        self._routes = tuple(routes)
        commands: list[Command] = []
        by_name: dict[str, Route] = {}
        for route in self._routes:
            command = command_from_route(route)
            if command is None:
                continue
            if command.name in by_name:
                logger.warning(
                    "commands.duplicate_name",
                    name=command.name,
                    route=route.pattern.pattern,
                    kept=by_name[command.name].pattern.pattern,
                )
                continue
            by_name[command.name] = route
            commands.append(command)
        self._by_name = by_name
        self._commands = tuple(commands)

    @property
    def commands(self) -> tuple[Command, ...]:
        return self._commands

    @property
    def routes(self) -> tuple[Route, ...]:
        return self._routes

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._commands)

    def lookup(self, name: str) -> Route:
        try:
            return self._by_name[name]
        except KeyError:
            raise RoutingError(name) from None

    def match(self, url: httpx.URL) -> tuple[Route, dict[str, str]] | None:
        """Find the first route whose pattern matches a plain HTTP request."""
        for route in self._routes:
            params = route.pattern.match(url)
            if params is not None:
                return route, params
        return None


def command_scopes(settings: RouterSettings) -> list[str | None]:
    """Registration scopes: each configured guild, or the global scope."""
    guild_ids = settings.guild_ids
    if not guild_ids:
        return [None]
    return list(guild_ids)


async def register_commands(
    client: DiscordClient,
    commands: Sequence[Command],
    scopes: Sequence[str | None],
) -> dict[str | None, bool]:
    """Replace the command set in every scope.

    Failures are logged per scope and never raised; one failing guild does
    not stop the others.
    """
    results: dict[str | None, bool] = {}
    for scope in scopes:
        try:
            await client.bulk_overwrite_commands(commands, guild_id=scope)
        except RegistrationFailure as exc:
            logger.error(
                "commands.register_failed",
                guild_id=scope,
                status=exc.status,
                error=str(exc),
            )
            results[scope] = False
            continue
        except httpx.HTTPError as exc:
            logger.error(
                "commands.register_failed",
                guild_id=scope,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            results[scope] = False
            continue
        logger.info("commands.registered", guild_id=scope, count=len(commands))
        results[scope] = True
    return results
