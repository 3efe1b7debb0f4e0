"""Core types shared by the request checkers."""

from __future__ import annotations

import abc
import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from ipaddress import IPv4Address, IPv6Address
from typing import Union

IPAddress = Union[IPv4Address, IPv6Address]


class Error(enum.IntEnum):
    """Kinds of security violation a checker can report."""

    NONE = 0
    DDOS = 1
    SQLI = 2
    XSS = 3
    CSRF = 4


@dataclass(frozen=True)
class SecurityCheckResult:
    """Outcome of running one or more checkers over a request."""

    allowed: bool
    error: Error = Error.NONE
    message: str = ""


@dataclass
class HttpRequest:
    """An HTTP request as seen by the firewall."""

    method: str = "GET"
    target: str = "/"
    version: str = "HTTP/1.1"
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: str = ""

    def __post_init__(self) -> None:
        items: Iterable[tuple[str, str]]
        if isinstance(self.headers, Mapping):
            items = self.headers.items()
        else:
            items = self.headers
        self.headers = [(str(name), str(value)) for name, value in items]

    def header(self, name: str) -> str:
        """Return the first value of a header, matched case-insensitively, or ''."""
        wanted = name.lower()
        return next((value for key, value in self.headers if key.lower() == wanted), "")

    def serialize(self) -> str:
        """Render the request in HTTP/1.x wire form."""
        lines = [f"{self.method} {self.target} {self.version}"]
        lines.extend(f"{name}: {value}" for name, value in self.headers)
        return "\r\n".join(lines) + "\r\n\r\n" + self.body


class SecurityChecker(abc.ABC):
    """A single inspection applied to incoming requests."""

    @abc.abstractmethod
    def check(self, request: HttpRequest, client_address: IPAddress) -> SecurityCheckResult:
        """Inspect a request and report whether it may pass."""