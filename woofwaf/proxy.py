"""The per-connection proxy: inspect each client request, then block or forward it."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from ipaddress import ip_address
from typing import Optional

from .config import Config, ConfigError
from .matching import find_best_match, run_security_checks
from .registry import CheckerRegistry
from .security import Error, HttpRequest, IPAddress, SecurityCheckResult

logger = logging.getLogger(__name__)

TIMEOUT_SECONDS = 30.0

_VIOLATION_NAMES = {
    Error.SQLI: "SQL Injection Attempt",
    Error.XSS: "Cross-Site Scripting (XSS) Attempt",
    Error.CSRF: "Cross-Site Request Forgery (CSRF) Attempt",
    Error.DDOS: "Potential DoS Attack",
}

Headers = list[tuple[str, str]]


def _fail(what: str, exc: BaseException) -> None:
    logger.error("%s: %s", what, exc)


def _header(headers: Headers, name: str) -> str:
    wanted = name.lower()
    return next((value for key, value in headers if key.lower() == wanted), "")


def _keep_alive(version: str, headers: Headers) -> bool:
    tokens = {
        token.strip().lower()
        for key, value in headers
        if key.lower() == "connection"
        for token in value.split(",")
    }
    if version.upper() in ("HTTP/1.0", "HTTP/0.9"):
        return "keep-alive" in tokens
    return "close" not in tokens


def _with_length(headers: Headers, length: int) -> Headers:
    kept = [
        (key, value)
        for key, value in headers
        if key.lower() not in ("transfer-encoding", "content-length")
    ]
    kept.append(("Content-Length", str(length)))
    return kept


def violation_page(result: SecurityCheckResult) -> str:
    """Return the HTML page shown to a client whose request was blocked."""
    name = _VIOLATION_NAMES.get(result.error, "Security Violation")
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head><title>403 Forbidden</title></head>\n"
        "<body>\n"
        "<h1>Access Denied</h1>\n"
        "<p>The request was blocked due to a security violation.</p>\n"
        f"<p>Violation Type: {name}</p>\n"
        f"<p>Details: {result.message}</p>\n"
        "</body>\n"
        "</html>\n"
    )


def build_violation_response(request: HttpRequest, result: SecurityCheckResult) -> bytes:
    """Return the wire bytes of a 403 response for a blocked request."""
    body = violation_page(result).encode("latin-1", errors="replace")
    keep_alive = _keep_alive(request.version, request.headers)
    headers: Headers = [("Server", "Woof WAF"), ("Content-Type", "text/html")]
    if request.version.upper() in ("HTTP/1.0", "HTTP/0.9"):
        if keep_alive:
            headers.append(("Connection", "keep-alive"))
    elif not keep_alive:
        headers.append(("Connection", "close"))
    headers += [
        ("X-Content-Type-Options", "nosniff"),
        ("X-Frame-Options", "DENY"),
        ("Content-Security-Policy", "default-src 'self'"),
        ("Content-Length", str(len(body))),
    ]
    head = [f"{request.version} 403 Forbidden"]
    head.extend(f"{key}: {value}" for key, value in headers)
    return ("\r\n".join(head) + "\r\n\r\n").encode("latin-1") + body


async def _read_head(reader: asyncio.StreamReader) -> Optional[list[str]]:
    lines: list[str] = []
    while True:
        raw = await reader.readline()
        if not raw:
            if not lines:
                return None
            raise ValueError("connection closed in the middle of a message head")
        text = raw.decode("latin-1").rstrip("\r\n")
        if not text:
            if lines:
                return lines
            continue
        lines.append(text)


def _parse_headers(lines: list[str]) -> Headers:
    headers: Headers = []
    for line in lines:
        name, colon, value = line.partition(":")
        if not colon or not name.strip():
            raise ValueError(f"Malformed header line: {line!r}")
        headers.append((name.strip(), value.strip()))
    return headers


async def _read_chunked(reader: asyncio.StreamReader) -> bytes:
    parts: list[bytes] = []
    while True:
        size_line = await reader.readline()
        if not size_line:
            raise ValueError("connection closed in the middle of a chunked body")
        size = int(size_line.split(b";", 1)[0].strip(), 16)
        if size == 0:
            while (await reader.readline()).strip():
                pass
            return b"".join(parts)
        parts.append(await reader.readexactly(size))
        await reader.readexactly(2)


async def _read_body(
    reader: asyncio.StreamReader, headers: Headers, *, until_eof: bool
) -> tuple[bytes, Headers]:
    if "chunked" in _header(headers, "Transfer-Encoding").lower():
        body = await _read_chunked(reader)
        return body, _with_length(headers, len(body))
    length_text = _header(headers, "Content-Length")
    if length_text:
        length = int(length_text)
        if length < 0:
            raise ValueError(f"Negative Content-Length: {length_text}")
        return await reader.readexactly(length), headers
    if until_eof:
        body = await reader.read()
        return body, _with_length(headers, len(body))
    return b"", headers


async def read_request(reader: asyncio.StreamReader) -> Optional[HttpRequest]:
    """Read one request; None when the client closed the connection before sending one.

    A chunked body is decoded and the request given a Content-Length instead.
    """
    head = await _read_head(reader)
    if head is None:
        return None
    parts = head[0].split()
    if len(parts) != 3:
        raise ValueError(f"Malformed request line: {head[0]!r}")
    method, target, version = parts
    headers = _parse_headers(head[1:])
    body, headers = await _read_body(reader, headers, until_eof=False)
    return HttpRequest(method, target, version, headers, body.decode("latin-1"))


async def _read_response(reader: asyncio.StreamReader, method: str) -> tuple[bytes, bool]:
    head = await _read_head(reader)
    if head is None:
        raise ConnectionError("server closed the connection without a response")
    status_line = head[0]
    parts = status_line.split(" ", 2)
    if len(parts) < 2:
        raise ValueError(f"Malformed status line: {status_line!r}")
    version, status = parts[0], int(parts[1])
    headers = _parse_headers(head[1:])
    if method.upper() == "HEAD" or 100 <= status < 200 or status in (204, 304):
        body = b""
    else:
        body, headers = await _read_body(reader, headers, until_eof=True)
    lines = [status_line]
    lines.extend(f"{key}: {value}" for key, value in headers)
    payload = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1") + body
    return payload, _keep_alive(version, headers)


async def read_response(reader: asyncio.StreamReader) -> tuple[bytes, bool]:
    """Read one response; return its wire bytes and whether the connection stays open."""
    return await _read_response(reader, "GET")


class HttpProxy:
    """Serves client connections, checking each request before it reaches the server."""

    def __init__(
        self,
        registry: CheckerRegistry,
        config: Config,
        server_host: str,
        server_port: int,
    ) -> None:
        self.registry = registry
        self.config = config
        self.server_host = server_host
        self.server_port = server_port

    def _inspect(self, request: HttpRequest, client: IPAddress) -> SecurityCheckResult:
        patterns = self.config.subdirectory_settings()
        kinds = find_best_match(request.target, patterns) or []
        return run_security_checks(request, client, self.registry.get_checkers(kinds))

    async def _forward(self, request: HttpRequest) -> tuple[bytes, bool]:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(self.server_host, self.server_port), TIMEOUT_SECONDS
        )
        try:
            writer.write(request.serialize().encode("latin-1"))
            await writer.drain()
            return await asyncio.wait_for(
                _read_response(reader, request.method), TIMEOUT_SECONDS
            )
        finally:
            writer.close()
            with suppress(OSError):
                await writer.wait_closed()

    def _release(self, client: Optional[IPAddress]) -> None:
        if client is None:
            return
        for checker in self.registry.get_checkers([Error.DDOS]):
            checker.remove_expired_connection(client)  # type: ignore[attr-defined]

    async def handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Serve one client connection until it closes or asks to be closed."""
        peer = writer.get_extra_info("peername")
        client = ip_address(peer[0]) if peer else None
        try:
            while True:
                request = await asyncio.wait_for(read_request(reader), TIMEOUT_SECONDS)
                if request is None:
                    self._release(client)
                    break
                result = self._inspect(request, client) if client else SecurityCheckResult(True)
                if result.allowed:
                    payload, keep_alive = await self._forward(request)
                else:
                    payload = build_violation_response(request, result)
                    keep_alive = _keep_alive(request.version, request.headers)
                writer.write(payload)
                await writer.drain()
                if not keep_alive:
                    self._release(client)
                    break
        except asyncio.TimeoutError as exc:
            _fail("timeout", exc)
        except (OSError, EOFError, ValueError, ConfigError) as exc:
            _fail("proxy", exc)
        finally:
            writer.close()
            with suppress(OSError):
                await writer.wait_closed()