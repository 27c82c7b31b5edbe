"""Attachment metadata derived from response headers."""

from __future__ import annotations

from collections.abc import Mapping
from email.message import EmailMessage

from .types import Attachment

DEFAULT_FILENAME = "attachment"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def parse_content_disposition(value: str) -> tuple[str, str | None]:
    """Return ``(disposition type, filename)`` for a Content-Disposition value."""
    header = EmailMessage()
    header["Content-Disposition"] = value
    disposition = header.get_content_disposition() or ""
    return disposition, header.get_filename()


def attachment_from_headers(headers: Mapping[str, str]) -> Attachment | None:
    value = headers.get("Content-Disposition")
    if not value:
        return None
    disposition, filename = parse_content_disposition(value)
    if disposition != "attachment":
        return None
    length = headers.get("Content-Length")
    return Attachment(
        id=0,
        filename=filename or DEFAULT_FILENAME,
        ephemeral=True,
        content_type=headers.get("Content-Type") or DEFAULT_CONTENT_TYPE,
        size=int(length) if length and length.isdigit() else None,
    )
