"""The firewall's entry point: listen for clients and proxy them to the protected server."""

from __future__ import annotations

import argparse
import asyncio
import logging
import re
import sys
from collections.abc import Mapping, Sequence
from contextlib import suppress
from ipaddress import ip_address
from typing import Optional

from .config import Config, ConfigError, get_config
from .proxy import HttpProxy
from .registry import CheckerRegistry
from .security import Error

LISTEN_ADDR = "0.0.0.0"

_INT_PREFIX = re.compile(r"\s*[+-]?\d+")

Endpoint = tuple[str, int]


def _port(text: str) -> int:
    match = _INT_PREFIX.match(text)
    if match is None:
        raise ValueError(f"Invalid port: {text!r}")
    port = int(match.group())
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"Port out of range: {port}")
    return port


def server_endpoints(settings: Mapping[str, str]) -> tuple[Endpoint, Endpoint]:
    """Return the address to listen on and the address of the protected server."""
    listen_port = _port(settings["client_port"])
    server_ip = settings["server_ip"][1:-1]
    server_port = _port(settings["server_port"])
    ip_address(LISTEN_ADDR)
    ip_address(server_ip)
    return (LISTEN_ADDR, listen_port), (server_ip, server_port)


async def serve(config: Optional[Config] = None) -> None:
    """Run the firewall until cancelled."""
    config = config if config is not None else get_config()
    (listen_host, listen_port), (server_host, server_port) = server_endpoints(config.settings())
    registry = CheckerRegistry(config)
    proxy = HttpProxy(registry, config, server_host, server_port)
    traffic = [
        asyncio.create_task(checker.run())  # type: ignore[attr-defined]
        for checker in registry.get_checkers([Error.DDOS])
    ]
    try:
        server = await asyncio.start_server(
            proxy.handle_client, listen_host, listen_port, reuse_address=True
        )
        async with server:
            await server.serve_forever()
    finally:
        for task in traffic:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Start the firewall from the command line."""
    parser = argparse.ArgumentParser(prog="woofwaf", description="Web application firewall.")
    parser.add_argument("--settings", default="Settings.json", help="general settings file")
    parser.add_argument("--sub-settings", default="SubSettings.json", help="per-path checks file")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    config = Config(args.settings, args.sub_settings)
    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        return 0
    except (ConfigError, KeyError, ValueError, OSError) as exc:
        print(f"woofwaf: {exc}", file=sys.stderr)
        return 1
    return 0