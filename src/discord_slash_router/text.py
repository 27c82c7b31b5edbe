"""Control-code aware text accumulation for streamed message content."""

from __future__ import annotations


def wrap_text(text: str) -> str:
    """Apply terminal-style control codes to ``text``.

    - ``\\b`` deletes the previous character of the current line
    - ``\\r\\n`` commits the current line (keeping the CRLF)
    - a bare ``\\r`` clears the current line
    - ``\\f`` clears everything accumulated so far
    """
    committed: list[str] = []
    line: list[str] = []
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        if char == "\b":
            if line:
                line.pop()
        elif char == "\r" and index + 1 < length and text[index + 1] == "\n":
            committed.append("".join(line) + "\r\n")
            line.clear()
            index += 1
        elif char == "\r":
            line.clear()
        elif char == "\f":
            committed.clear()
            line.clear()
        else:
            line.append(char)
        index += 1
    return "".join(committed) + "".join(line)


def apply_chunk(content: str, chunk: str, limit: int) -> str:
    """Append ``chunk`` to ``content`` and keep the last ``limit`` characters."""
    return wrap_text(content + chunk)[-limit:]
