"""Interaction dispatcher: validate, route, acknowledge and stream."""

from __future__ import annotations

import base64
import inspect
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

import anyio
import httpx
import msgspec

from .bridge import ABORT_SIGNAL_EXTENSION, AbortSignal, EditBridge
from .client import DiscordClient
from .components import action_rows, parse_link_header
from .errors import AuthenticationError, RoutingError
from .logging import get_logger
from .registry import CommandRegistry, command_scopes, register_commands
from .routes import Handler, Route, normalize_routes
from .settings import RouterSettings
from .signature import SignatureValidator
from .types import (
    ConnInfo,
    Interaction,
    InteractionData,
    InteractionResponseType,
    InteractionState,
    InteractionType,
    Message,
)

if TYPE_CHECKING:
    from anyio.abc import TaskGroup

logger = get_logger(__name__)

Teardown = Callable[[], Awaitable[None]]

# Placeholder content of the ACK; the first edit renders it as an empty line.
PLACEHOLDER_CONTENT = "\r"


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=msgspec.json.encode(payload),
        headers={"Content-Type": "application/json"},
    )


def error_response(error: str, status_code: int) -> httpx.Response:
    return json_response({"error": error}, status_code)


def _option_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def _identity_headers(interaction: Interaction) -> dict[str, str]:
    headers: dict[str, str] = {}
    user_id = interaction.user_id
    if user_id is not None:
        credentials = base64.b64encode(f"{user_id}:".encode()).decode()
        headers["Authorization"] = f"Basic {credentials}"
    if interaction.locale:
        headers["Accept-Language"] = interaction.locale
    return headers


async def call_handler(
    handler: Handler,
    request: httpx.Request,
    conn_info: ConnInfo | None,
    params: dict[str, str],
) -> httpx.Response:
    result = handler(request, conn_info, params)
    if inspect.isawaitable(result):
        result = await result
    return result


class Router:
    """Serve HTTP routes and the Discord interaction endpoint.

    Call :meth:`startup` before handling interactions, from the task that
    will later await the returned teardown: streaming edits run in a task
    group owned by that task.
    """

    def __init__(
        self,
        routes: Mapping[str, Handler] | Iterable[Route],
        settings: RouterSettings | None = None,
        *,
        client: DiscordClient | None = None,
    ) -> None:
        self.settings = settings if settings is not None else RouterSettings()
        self.registry = CommandRegistry(normalize_routes(routes))
        self._validator = SignatureValidator(self.settings.public_key)
        self._client = client or DiscordClient(self.settings)
        self._owns_client = client is None
        self._tg: TaskGroup | None = None
        self.bridges: dict[str, EditBridge] = {}

    @property
    def client(self) -> DiscordClient:
        return self._client

    async def startup(self) -> Teardown:
        """Start background work and register commands.

        Registration runs in the background; its failures are logged and do
        not prevent serving. Returns the teardown coroutine function.
        """
        if self._tg is not None:
            raise RuntimeError("router already started")
        self._tg = await anyio.create_task_group().__aenter__()
        scopes = command_scopes(self.settings)
        if not self.settings.serve_only:
            self._tg.start_soon(
                register_commands, self._client, self.registry.commands, scopes
            )

        async def teardown() -> None:
            await self._shutdown(scopes)

        return teardown

    async def _shutdown(self, scopes: list[str | None]) -> None:
        tg = self._tg
        self._tg = None
        if tg is not None:
            tg.cancel_scope.cancel()
            await tg.__aexit__(None, None, None)
        try:
            if self.settings.delete_commands_on_shutdown and not self.settings.serve_only:
                await register_commands(self._client, (), scopes)
        finally:
            if self._owns_client:
                await self._client.close()

    async def handle(
        self, request: httpx.Request, conn_info: ConnInfo | None = None
    ) -> httpx.Response:
        url = request.url
        if request.method == "POST" and url.path == self.settings.endpoint:
            return await self.handle_interaction(request, conn_info)
        matched = self.registry.match(url)
        if matched is not None:
            route, params = matched
            return await call_handler(route.handler, request, conn_info, params)
        return error_response("Invalid Request", 401)

    async def handle_interaction(
        self, request: httpx.Request, conn_info: ConnInfo | None = None
    ) -> httpx.Response:
        logger.debug("interaction.state", state=InteractionState.RECEIVED.value)
        body = await request.aread()
        try:
            body = self._validator.validate(request.headers, body)
        except AuthenticationError as exc:
            logger.info(
                "interaction.state",
                state=InteractionState.REJECTED.value,
                error=str(exc),
            )
            return error_response("Invalid Request", 401)

        try:
            interaction = msgspec.json.decode(body, type=Interaction)
        except msgspec.DecodeError as exc:
            logger.warning("interaction.malformed", error=str(exc))
            return error_response("bad request", 400)
        logger.debug(
            "interaction.state",
            state=InteractionState.VALIDATED.value,
            type=interaction.type,
        )

        if interaction.type == InteractionType.PING:
            logger.debug("interaction.state", state=InteractionState.PONG.value)
            return json_response({"type": InteractionResponseType.PONG})

        if (
            interaction.type == InteractionType.APPLICATION_COMMAND
            and interaction.data is not None
        ):
            try:
                return await self._handle_command(
                    request, conn_info, interaction, interaction.data
                )
            except RoutingError as exc:
                logger.error("interaction.unknown_command", name=exc.name)

        # A valid Discord request never gets here.
        return error_response("bad request", 400)

    async def _handle_command(
        self,
        request: httpx.Request,
        conn_info: ConnInfo | None,
        interaction: Interaction,
        data: InteractionData,
    ) -> httpx.Response:
        if self._tg is None:
            raise RuntimeError("Router.startup() must be awaited before handling commands")
        name = data.name
        route = self.registry.lookup(name)
        options = [
            (option.name, _option_value(option.value))
            for option in data.options or ()
        ]
        url, params = route.pattern.resolve(options, request.url)
        logger.debug(
            "interaction.state",
            state=InteractionState.COMMAND_RESOLVED.value,
            command=name,
            url=str(url),
        )

        abort = AbortSignal()
        command_request = httpx.Request(
            "GET",
            url,
            headers=_identity_headers(interaction),
            extensions={ABORT_SIGNAL_EXTENSION: abort},
        )
        try:
            response = await call_handler(
                route.handler, command_request, conn_info, params
            )
        except Exception as exc:
            logger.exception(
                "interaction.handler_failed",
                command=name,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return error_response("internal error", 500)

        message = Message(
            content=PLACEHOLDER_CONTENT,
            components=action_rows(parse_link_header(response.headers.get("Link"))),
        )
        ack = json_response(
            {
                "type": InteractionResponseType.DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE,
                "data": message,
            }
        )
        bridge = EditBridge(
            self._client,
            token=interaction.token,
            message=message,
            settings=self.settings,
            abort=abort,
        )
        self.bridges[interaction.token] = bridge
        self._tg.start_soon(self._run_bridge, interaction.token, bridge, response)
        logger.debug(
            "interaction.state", state=InteractionState.ACK_SENT.value, command=name
        )
        return ack

    async def _run_bridge(
        self, token: str, bridge: EditBridge, response: httpx.Response
    ) -> None:
        try:
            await bridge.run(response)
        finally:
            self.bridges.pop(token, None)
