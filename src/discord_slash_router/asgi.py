"""ASGI adapter serving a :class:`Router` through Starlette."""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator

import httpx
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import Response, StreamingResponse
from starlette.routing import Route

from .bridge import has_async_body
from .logging import get_logger
from .router import Router
from .types import ConnInfo

logger = get_logger(__name__)

_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

# Dropped because the body is re-streamed already decoded.
_SKIP_HEADERS = {"content-length", "content-encoding", "transfer-encoding", "connection"}


def _conn_info(request: Request) -> ConnInfo:
    server = request.scope.get("server")
    client = request.client
    return ConnInfo(
        local_addr=(server[0], server[1]) if server else None,
        remote_addr=(client.host, client.port) if client else None,
    )


def to_httpx_request(request: Request, body: bytes) -> httpx.Request:
    return httpx.Request(
        request.method,
        str(request.url),
        headers=request.headers.raw,
        content=body,
    )


def to_starlette_response(response: httpx.Response) -> Response:
    headers = {
        key: value
        for key, value in response.headers.items()
        if key.lower() not in _SKIP_HEADERS
    }
    body = response.aiter_bytes() if has_async_body(response) else response.iter_bytes()
    return StreamingResponse(
        body,
        status_code=response.status_code,
        headers=headers,
    )


def create_app(router: Router) -> Starlette:
    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        teardown = await router.startup()
        logger.info("server.started", endpoint=router.settings.endpoint)
        try:
            yield
        finally:
            await teardown()
            logger.info("server.stopped")

    async def dispatch(request: Request) -> Response:
        body = await request.body()
        response = await router.handle(
            to_httpx_request(request, body), _conn_info(request)
        )
        return to_starlette_response(response)

    return Starlette(
        routes=[Route("/{path:path}", dispatch, methods=_METHODS)],
        lifespan=lifespan,
    )
