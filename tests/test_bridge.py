"""Tests for rate-limited edit streaming."""

from __future__ import annotations

from collections.abc import AsyncIterator

import anyio
import httpx
import pytest

from discord_slash_router.bridge import (
    AbortSignal,
    EditBridge,
    get_abort_signal,
    rate_limited,
)
from discord_slash_router.types import InteractionState, Message
from discord_fixtures import INTERACTION_TOKEN, FakeDiscordClient, make_settings


async def _collect(
    items: list[tuple[float, bytes]], interval: float
) -> list[tuple[float, bytes]]:
    """Feed ``(delay, chunk)`` pairs through ``rate_limited``."""
    send, receive = anyio.create_memory_object_stream[bytes](16)
    out: list[tuple[float, bytes]] = []
    start = anyio.current_time()

    async def feed() -> None:
        async with send:
            for delay, chunk in items:
                await anyio.sleep(delay)
                await send.send(chunk)

    async with anyio.create_task_group() as tg:
        tg.start_soon(feed)
        async for chunk in rate_limited(receive, interval):
            out.append((anyio.current_time() - start, chunk))
    return out


def _body(*chunks: bytes, delay: float = 0.0) -> AsyncIterator[bytes]:
    async def gen() -> AsyncIterator[bytes]:
        for chunk in chunks:
            if delay:
                await anyio.sleep(delay)
            yield chunk

    return gen()


def _bridge(client: FakeDiscordClient, **overrides) -> tuple[EditBridge, AbortSignal]:
    abort = AbortSignal()
    bridge = EditBridge(
        client,
        token=INTERACTION_TOKEN,
        message=Message(content="\r"),
        settings=make_settings(**overrides),
        abort=abort,
    )
    return bridge, abort


# --- rate_limited ---


@pytest.mark.anyio
async def test_rate_limited_merges_chunks_within_window() -> None:
    out = await _collect([(0, b"a"), (0.05, b"b"), (0.3, b"c")], interval=0.2)
    assert [chunk for _, chunk in out] == [b"ab", b"c"]
    assert out[0][0] >= 0.19


@pytest.mark.anyio
async def test_rate_limited_flushes_remainder_at_end() -> None:
    out = await _collect([(0, b"a"), (0, b"b")], interval=5)
    assert [chunk for _, chunk in out] == [b"ab"]
    assert out[0][0] < 1


@pytest.mark.anyio
async def test_rate_limited_ignores_empty_chunks() -> None:
    out = await _collect([(0, b""), (0, b"x"), (0, b"")], interval=0.05)
    assert [chunk for _, chunk in out] == [b"x"]


@pytest.mark.anyio
async def test_rate_limited_empty_stream() -> None:
    assert await _collect([], interval=0.05) == []


# --- AbortSignal ---


@pytest.mark.anyio
async def test_abort_signal_is_one_shot() -> None:
    abort = AbortSignal()
    assert not abort.aborted
    abort.abort("gone")
    abort.abort("again")
    await abort.wait()
    assert abort.aborted
    assert abort.reason == "gone"


def test_get_abort_signal() -> None:
    abort = AbortSignal()
    request = httpx.Request("GET", "https://x", extensions={"abort_signal": abort})
    assert get_abort_signal(request) is abort
    assert get_abort_signal(httpx.Request("GET", "https://x")) is None


# --- EditBridge streaming ---


@pytest.mark.anyio
async def test_bridge_single_body_is_one_edit() -> None:
    client = FakeDiscordClient()
    bridge, _ = _bridge(client, rate_limit_ms=100)
    await bridge.run(httpx.Response(200, content=_body(b"Hello, ", b"Ann")))

    assert [edit["content"] for edit in client.edits] == ["Hello, Ann"]
    assert client.edits[0]["token"] == INTERACTION_TOKEN
    assert client.edits[0]["message_id"] == "@original"
    assert bridge.state is InteractionState.COMPLETED
    assert bridge.edits == 1


@pytest.mark.anyio
async def test_bridge_edits_are_spaced_by_rate_limit() -> None:
    client = FakeDiscordClient()
    bridge, _ = _bridge(client, rate_limit_ms=50)
    await bridge.run(
        httpx.Response(200, content=_body(b"1", b"\r2", b"\r3", delay=0.08))
    )

    assert [edit["content"] for edit in client.edits] == ["1", "2", "3"]
    first, second = (edit["at"] for edit in client.edits[:2])
    assert second - first >= 0.045


@pytest.mark.anyio
async def test_bridge_applies_character_limit() -> None:
    client = FakeDiscordClient()
    bridge, _ = _bridge(client, character_limit=5)
    await bridge.run(httpx.Response(200, content=_body(b"abcdefgh")))
    assert client.edits[-1]["content"] == "defgh"
    assert bridge.message.content == "defgh"


@pytest.mark.anyio
async def test_bridge_decodes_split_multibyte_characters() -> None:
    euro = "€".encode()
    client = FakeDiscordClient()
    bridge, _ = _bridge(client, rate_limit_ms=30)
    await bridge.run(
        httpx.Response(200, content=_body(b"x" + euro[:1], euro[1:], delay=0.06))
    )
    assert client.edits[-1]["content"] == "x€"
    assert all("�" not in edit["content"] for edit in client.edits)


@pytest.mark.anyio
async def test_bridge_empty_body_sends_no_edit() -> None:
    client = FakeDiscordClient()
    bridge, _ = _bridge(client)
    await bridge.run(httpx.Response(200, content=b""))
    assert client.edits == []
    assert bridge.state is InteractionState.COMPLETED


@pytest.mark.anyio
async def test_bridge_stops_on_unknown_interaction() -> None:
    client = FakeDiscordClient(statuses=[404])
    bridge, abort = _bridge(client, rate_limit_ms=20)
    await bridge.run(
        httpx.Response(200, content=_body(b"a", b"b", b"c", delay=0.05))
    )

    assert len(client.edits) == 1
    assert abort.aborted
    assert abort.reason == "Not Found"
    assert bridge.state is InteractionState.ABORTED


@pytest.mark.anyio
async def test_bridge_continues_after_edit_failure_by_default() -> None:
    client = FakeDiscordClient(statuses=[500, 200])
    bridge, abort = _bridge(client, rate_limit_ms=20)
    await bridge.run(httpx.Response(200, content=_body(b"a", b"b", delay=0.05)))

    assert [edit["content"] for edit in client.edits] == ["a", "ab"]
    assert not abort.aborted
    assert bridge.state is InteractionState.COMPLETED


@pytest.mark.anyio
async def test_bridge_abort_policy_stops_on_edit_failure() -> None:
    client = FakeDiscordClient(statuses=[500])
    bridge, abort = _bridge(client, rate_limit_ms=20, edit_failure_policy="abort")
    await bridge.run(httpx.Response(200, content=_body(b"a", b"b", delay=0.05)))

    assert len(client.edits) == 1
    assert abort.aborted
    assert bridge.state is InteractionState.ABORTED


@pytest.mark.anyio
async def test_bridge_network_error_follows_policy() -> None:
    client = FakeDiscordClient(edit_error=httpx.ConnectError("boom"))
    bridge, abort = _bridge(client, rate_limit_ms=20)
    await bridge.run(httpx.Response(200, content=_body(b"a", b"b", delay=0.05)))

    assert len(client.edits) == 2
    assert bridge.edits == 0
    assert not abort.aborted
    assert bridge.state is InteractionState.COMPLETED


@pytest.mark.anyio
async def test_bridge_keeps_partial_output_when_body_fails() -> None:
    async def failing() -> AsyncIterator[bytes]:
        yield b"partial"
        raise RuntimeError("handler crashed")

    client = FakeDiscordClient()
    bridge, _ = _bridge(client)
    await bridge.run(httpx.Response(200, content=failing()))

    assert [edit["content"] for edit in client.edits] == ["partial"]
    assert bridge.state is InteractionState.COMPLETED


# --- EditBridge attachments ---


@pytest.mark.anyio
async def test_bridge_uploads_attachment_once() -> None:
    client = FakeDiscordClient()
    bridge, _ = _bridge(client)
    response = httpx.Response(
        200,
        headers={
            "Content-Disposition": 'attachment; filename="report.csv"',
            "Content-Type": "text/csv",
        },
        content=_body(b"a,b\n", b"1,2\n"),
    )
    await bridge.run(response)

    assert len(client.edits) == 1
    edit = client.edits[0]
    assert edit["file"] == ("report.csv", b"a,b\n1,2\n", "text/csv")
    assert edit["content"] == ""
    attachment = edit["message"]["attachments"][0]
    assert attachment["filename"] == "report.csv"
    assert attachment["size"] == 8
    assert attachment["ephemeral"] is True
    assert bridge.state is InteractionState.COMPLETED


# --- Sync bodies ---


@pytest.mark.anyio
async def test_bridge_streams_sync_iterator_body() -> None:
    client = FakeDiscordClient()
    bridge, _ = _bridge(client, rate_limit_ms=100)
    response = httpx.Response(200, content=iter([b"Hello, ", b"Ann"]))
    await bridge.run(response)

    assert [edit["content"] for edit in client.edits] == ["Hello, Ann"]
    assert bridge.state is InteractionState.COMPLETED
    assert response.is_closed


@pytest.mark.anyio
async def test_bridge_uploads_sync_iterator_attachment() -> None:
    client = FakeDiscordClient()
    bridge, _ = _bridge(client)
    response = httpx.Response(
        200,
        headers={"Content-Disposition": 'attachment; filename="hello.txt"'},
        content=iter([b"Hello, ", b"Ann"]),
    )
    await bridge.run(response)

    assert len(client.edits) == 1
    assert client.edits[0]["file"] == (
        "hello.txt",
        b"Hello, Ann",
        "application/octet-stream",
    )
    assert client.edits[0]["message"]["attachments"][0]["size"] == 10
    assert bridge.state is InteractionState.COMPLETED
