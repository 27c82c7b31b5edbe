"""Tests for attachment header parsing."""

from __future__ import annotations

import httpx

from discord_slash_router.attachments import (
    attachment_from_headers,
    parse_content_disposition,
)


def test_parse_content_disposition() -> None:
    assert parse_content_disposition('attachment; filename="report.csv"') == (
        "attachment",
        "report.csv",
    )
    assert parse_content_disposition("inline") == ("inline", None)


def test_attachment_from_headers() -> None:
    headers = httpx.Headers(
        {
            "Content-Disposition": 'attachment; filename="report.csv"',
            "Content-Type": "text/csv",
            "Content-Length": "12",
        }
    )
    attachment = attachment_from_headers(headers)
    assert attachment is not None
    assert attachment.id == 0
    assert attachment.filename == "report.csv"
    assert attachment.content_type == "text/csv"
    assert attachment.size == 12
    assert attachment.ephemeral is True


def test_attachment_defaults() -> None:
    attachment = attachment_from_headers(
        httpx.Headers({"Content-Disposition": "attachment"})
    )
    assert attachment is not None
    assert attachment.filename == "attachment"
    assert attachment.content_type == "application/octet-stream"
    assert attachment.size is None
    assert attachment.ephemeral is True


def test_no_attachment_for_inline_or_missing() -> None:
    assert attachment_from_headers(httpx.Headers({"Content-Disposition": "inline"})) is None
    assert attachment_from_headers(httpx.Headers({"Content-Type": "text/plain"})) is None
