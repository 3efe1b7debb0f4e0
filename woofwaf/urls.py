"""Helpers for taking URLs apart and decoding percent escapes."""

from __future__ import annotations

import re

_HEX_PREFIX = re.compile(r"\s*([+-]?[0-9A-Fa-f]+)")


def get_base_url(url: str) -> str:
    """Return the host part of a URL: what follows '//' up to the next '/'.

    Without a '//' the host is taken to start at the second character.
    """
    marker = url.find("//")
    start = marker + 2 if marker != -1 else 1
    if start > len(url):
        raise ValueError(f"URL too short to hold a host: {url!r}")
    end = url.find("/", start)
    return url[start:end] if end != -1 else url[start:]


def _escape_value(digits: str) -> str:
    match = _HEX_PREFIX.match(digits)
    value = int(match.group(1), 16) if match else 0
    return chr(value & 0xFF)


def url_decode(text: str) -> str:
    """Replace '%XX' escapes with the characters they stand for.

    A '%' without two characters after it is kept as it is.
    """
    parts: list[str] = []
    i = 0
    length = len(text)
    while i < length:
        char = text[i]
        if char == "%" and i + 2 < length:
            parts.append(_escape_value(text[i + 1 : i + 3]))
            i += 3
        else:
            parts.append(char)
            i += 1
    return "".join(parts)