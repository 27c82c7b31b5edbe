"""Buttons derived from ``Link`` response headers."""

from __future__ import annotations

import re
from urllib.parse import unquote

from .types import ButtonStyle, Component, ComponentType

_TARGET = re.compile(r"<([^>]*)>")
_QUOTED = re.compile(r'^"(.*)"$')


def parse_link(entry: str) -> Component | None:
    """Turn one ``<uri>; title="..."; disabled`` entry into a button.

    A local path (leading ``/``) becomes a custom-id button, anything else a
    link-style button.
    """
    target, *params = entry.split(";")
    found = _TARGET.search(target)
    if found is None:
        return None
    href = unquote(found.group(1))
    if href.startswith("/"):
        button = Component(
            type=ComponentType.BUTTON,
            style=ButtonStyle.PRIMARY,
            custom_id=href[1:],
        )
    else:
        button = Component(
            type=ComponentType.BUTTON,
            style=ButtonStyle.LINK,
            url=href,
        )
    for param in params:
        key, _, value = param.strip().partition("=")
        value = _QUOTED.sub(r"\1", value.strip())
        if key == "title":
            button.label = value
        elif key == "disabled":
            button.disabled = True
    return button


def parse_link_header(value: str | None) -> list[Component]:
    if not value:
        return []
    buttons = []
    for entry in value.split(","):
        button = parse_link(entry)
        if button is not None:
            buttons.append(button)
    return buttons


def action_rows(buttons: list[Component]) -> list[Component]:
    """Wrap buttons in the single action row Discord requires."""
    if not buttons:
        return []
    return [Component(type=ComponentType.ACTION_ROW, components=buttons)]
