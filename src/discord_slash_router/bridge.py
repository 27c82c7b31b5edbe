"""Relay a handler's response body into interaction message edits."""

from __future__ import annotations

import codecs
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import TYPE_CHECKING

import anyio
import anyio.lowlevel
import httpx
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from .attachments import attachment_from_headers
from .client import ORIGINAL_MESSAGE_ID, FileTuple
from .errors import UpstreamEditFailure, UpstreamTerminalFailure
from .logging import get_logger
from .text import apply_chunk, wrap_text
from .types import Attachment, InteractionState, Message

if TYPE_CHECKING:
    from .client import DiscordClient
    from .settings import RouterSettings

logger = get_logger(__name__)

ABORT_SIGNAL_EXTENSION = "abort_signal"


class AbortSignal:
    """One-shot cancellation signal handed to a handler through its request."""

    def __init__(self) -> None:
        self._event = anyio.Event()
        self.reason: str | None = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self, reason: str | None = None) -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


def get_abort_signal(request: httpx.Request) -> AbortSignal | None:
    signal = request.extensions.get(ABORT_SIGNAL_EXTENSION)
    return signal if isinstance(signal, AbortSignal) else None


def has_async_body(response: httpx.Response) -> bool:
    return isinstance(response.stream, httpx.AsyncByteStream)


async def iter_body(response: httpx.Response) -> AsyncIterator[bytes]:
    """Yield the response body whether the handler gave a sync or async stream."""
    if has_async_body(response):
        async for chunk in response.aiter_bytes():
            yield chunk
        return
    for chunk in response.iter_bytes():
        yield chunk
        await anyio.lowlevel.checkpoint()


async def _close_response(response: httpx.Response) -> None:
    try:
        if has_async_body(response):
            await response.aclose()
        else:
            response.close()
    except Exception as exc:
        logger.debug(
            "bridge.close_failed",
            error=str(exc),
            error_type=exc.__class__.__name__,
        )


async def _receive(stream: MemoryObjectReceiveStream[bytes]) -> bytes | None:
    try:
        return await stream.receive()
    except anyio.EndOfStream:
        return None


async def rate_limited(
    receive: MemoryObjectReceiveStream[bytes], interval: float
) -> AsyncIterator[bytes]:
    """Coalesce chunks so that at most one is yielded per ``interval``.

    The window opens with the first byte buffered after a flush. When it
    closes everything buffered is yielded as one chunk; at end of stream any
    remainder is yielded immediately and the open window is dropped.
    """
    buffer = bytearray()
    deadline: float | None = None
    async with receive:
        while True:
            if deadline is None:
                chunk = await _receive(receive)
            else:
                with anyio.move_on_after(deadline - anyio.current_time()) as scope:
                    chunk = await _receive(receive)
                if scope.cancelled_caught:
                    yield bytes(buffer)
                    buffer.clear()
                    deadline = None
                    continue
            if chunk is None:
                break
            if not chunk:
                continue
            buffer += chunk
            if deadline is None:
                deadline = anyio.current_time() + interval
    if buffer:
        yield bytes(buffer)


class EditBridge:
    """Per-interaction edit pipeline.

    Edits for one interaction are strictly sequential; the state moves from
    ``ACK_SENT`` to ``STREAMING`` and ends in ``COMPLETED`` or ``ABORTED``.
    """

    def __init__(
        self,
        client: DiscordClient,
        *,
        token: str,
        message: Message,
        settings: RouterSettings,
        abort: AbortSignal,
        message_id: str = ORIGINAL_MESSAGE_ID,
    ) -> None:
        self._client = client
        self._token = token
        self._settings = settings
        self._abort = abort
        self._message_id = message_id
        self.message = message
        self.state = InteractionState.ACK_SENT
        self.edits = 0

    async def run(self, response: httpx.Response) -> None:
        self.state = InteractionState.STREAMING
        try:
            attachment = attachment_from_headers(response.headers)
            if attachment is not None:
                await self.upload(response, attachment)
            else:
                await self.stream(response)
        except Exception as exc:
            logger.exception(
                "bridge.failed",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            self.state = InteractionState.ABORTED
            return
        finally:
            with anyio.CancelScope(shield=True):
                await _close_response(response)
        self.state = (
            InteractionState.ABORTED if self._abort.aborted else InteractionState.COMPLETED
        )
        logger.debug(
            "bridge.finished", state=self.state.value, edits=self.edits
        )

    async def stream(self, response: httpx.Response) -> None:
        """Edit the message as the body streams in, one edit per rate window."""
        send, receive = anyio.create_memory_object_stream[bytes](
            self._settings.stream_buffer_size
        )
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        async with anyio.create_task_group() as tg:
            tg.start_soon(self._pump, response, send)
            async with aclosing(
                rate_limited(receive, self._settings.rate_limit)
            ) as chunks:
                async for chunk in chunks:
                    if not await self._apply(decoder.decode(chunk)):
                        tg.cancel_scope.cancel()
                        return
            await self._apply(decoder.decode(b"", final=True))

    async def upload(self, response: httpx.Response, attachment: Attachment) -> None:
        """Send the full body as a single attachment edit."""
        try:
            if has_async_body(response):
                body = await response.aread()
            else:
                body = response.read()
        except Exception as exc:
            logger.error(
                "bridge.body_failed",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return
        if attachment.size is None:
            attachment.size = len(body)
        self.message.content = wrap_text(self.message.content)[
            -self._settings.character_limit :
        ]
        self.message.attachments = [attachment]
        file: FileTuple = (
            attachment.filename,
            body,
            attachment.content_type or "application/octet-stream",
        )
        if await self._send(file=file):
            logger.info(
                "bridge.attachment_sent",
                filename=attachment.filename,
                size=attachment.size,
            )

    async def _pump(
        self, response: httpx.Response, send: MemoryObjectSendStream[bytes]
    ) -> None:
        async with send:
            try:
                async with aclosing(iter_body(response)) as chunks:
                    async for chunk in chunks:
                        await send.send(chunk)
            except anyio.BrokenResourceError:
                return
            except Exception as exc:
                logger.error(
                    "bridge.body_failed",
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                )

    async def _apply(self, text: str) -> bool:
        if not text:
            return True
        self.message.content = apply_chunk(
            self.message.content, text, self._settings.character_limit
        )
        return await self._send()

    async def _send(self, *, file: FileTuple | None = None) -> bool:
        """Issue one edit; False means no further edits should be attempted."""
        try:
            response = await self._client.edit_message(
                self._token,
                self.message,
                message_id=self._message_id,
                file=file,
            )
        except httpx.HTTPError as exc:
            return self._edit_failed(UpstreamEditFailure(None, str(exc)))
        self.edits += 1
        if response.status_code == 404:
            failure = UpstreamTerminalFailure(response.reason_phrase)
            logger.info("bridge.interaction_gone", error=str(failure))
            self._abort.abort(response.reason_phrase)
            return False
        if response.is_error:
            return self._edit_failed(
                UpstreamEditFailure(response.status_code, response.reason_phrase)
            )
        return True

    def _edit_failed(self, failure: UpstreamEditFailure) -> bool:
        logger.warning(
            "bridge.edit_failed",
            status=failure.status,
            error=str(failure),
            policy=self._settings.edit_failure_policy,
        )
        if self._settings.edit_failure_policy == "abort":
            self._abort.abort(str(failure))
            return False
        return True
