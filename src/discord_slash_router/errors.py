"""Exceptions raised while validating, routing and relaying interactions."""

from __future__ import annotations


class DiscordRouterError(Exception):
    pass


class AuthenticationError(DiscordRouterError):
    """Missing, malformed or non-verifying request signature."""


class RoutingError(DiscordRouterError):
    def __init__(self, name: str) -> None:
        super().__init__(f"no route registered for command {name!r}")
        self.name = name


class UpstreamEditFailure(DiscordRouterError):
    """An edit call failed with something other than 404."""

    def __init__(self, status: int | None, detail: str | None = None) -> None:
        super().__init__(detail or f"edit failed with status {status}")
        self.status = status
        self.detail = detail


class UpstreamTerminalFailure(UpstreamEditFailure):
    """The interaction no longer exists; no further edits are possible."""

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(404, detail or "unknown interaction")


class RegistrationFailure(DiscordRouterError):
    def __init__(
        self, scope: str | None, status: int | None, detail: str | None = None
    ) -> None:
        where = f"guild {scope}" if scope else "global scope"
        super().__init__(
            f"failed to register commands for {where}: {detail or status}"
        )
        self.scope = scope
        self.status = status
        self.detail = detail
