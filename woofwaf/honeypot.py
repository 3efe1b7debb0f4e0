"""Reputation lookups of client addresses through the Project Honey Pot http:BL service."""

from __future__ import annotations

import logging
import socket
import threading
from collections import deque
from collections.abc import Callable, MutableMapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from ipaddress import ip_address
from pathlib import Path
from typing import Optional, Union

from .security import IPAddress

logger = logging.getLogger(__name__)

HONEYPOT_KEY_FILE_LOCATION = "../honeypot_key"
API_SUFFIX = "dnsbl.httpbl.org"

# Visitor types above this are search engines' opposites: harvesters, spammers.
SUSPICIOUS_TYPE = 1
# Threat scores run from 0 to 255.
MAX_THREAT_SCORE_ALLOWED = 15

BLOCKED_IP = 2**31 - 1
VALID_IP = 0

Resolver = Callable[[str], str]


@dataclass
class IPData:
    """What the firewall knows about one client address."""

    timestamps: deque = field(default_factory=deque)
    current_connections: int = 1
    blocked_until: float = VALID_IP


def parse_ip(ip: str) -> tuple[str, str, str, str]:
    """Split a dotted IPv4 address into its four parts."""
    parts = ip.split(".")
    if parts and parts[-1] == "":
        parts.pop()
    if len(parts) != 4:
        raise ValueError(f"Invalid IP to parse: {ip}")
    return (parts[0], parts[1], parts[2], parts[3])


def read_api_key(path: Union[str, Path] = HONEYPOT_KEY_FILE_LOCATION) -> str:
    """Return the first line of the key file."""
    try:
        with open(path, encoding="utf-8") as handle:
            line = handle.readline()
    except OSError as exc:
        raise ValueError("error accessing honeypot key!") from exc
    if line == "":
        raise ValueError("honeypot key does not exist in honeypot_key file")
    return line.rstrip("\n")


def format_api_request(ip: IPAddress, api_key: str) -> str:
    """Build the DNS name that asks http:BL about an address."""
    first, second, third, fourth = parse_ip(str(ip))
    return f"{api_key}.{fourth}.{third}.{second}.{first}.{API_SUFFIX}"


class ProjectHoneypotQuery:
    """Looks client addresses up in the background and records the verdict in a tracker."""

    def __init__(
        self,
        tracker: Optional[MutableMapping[IPAddress, IPData]] = None,
        lock: Optional[threading.Lock] = None,
        api_key_path: Union[str, Path] = HONEYPOT_KEY_FILE_LOCATION,
        resolver: Optional[Resolver] = None,
    ) -> None:
        self.tracker: MutableMapping[IPAddress, IPData] = {} if tracker is None else tracker
        self.lock = threading.Lock() if lock is None else lock
        self.api_key_path = Path(api_key_path)
        self._resolver: Resolver = resolver if resolver is not None else socket.gethostbyname
        self._api_key: Optional[str] = None
        self._key_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="honeypot")

    def _key(self) -> str:
        with self._key_lock:
            if self._api_key is None:
                self._api_key = read_api_key(self.api_key_path)
            return self._api_key

    def update_tracker_info(self, ip: Union[IPAddress, str]) -> Optional[Future]:
        """Start a lookup of an address; IPv6 addresses are not supported and are skipped."""
        address = ip_address(ip) if isinstance(ip, str) else ip
        if address.version != 4:
            return None
        query = format_api_request(address, self._key())
        return self._executor.submit(self._resolve_and_record, address, query)

    def _resolve_and_record(self, ip: IPAddress, query: str) -> None:
        try:
            resolved: Optional[str] = self._resolver(query)
        except OSError as exc:
            logger.debug("lookup of %s failed: %s", ip, exc)
            resolved = None
        self.handle_resolution(ip, resolved)

    def handle_resolution(self, ip: IPAddress, resolved: Optional[str]) -> None:
        """Record the verdict for an address given the lookup's answer, or None if it failed."""
        blocked = False
        if resolved is not None:
            logger.info("endpoint: %s", resolved)
            octet, days, threat_score, visitor_type = (int(part) for part in parse_ip(str(resolved)))
            if octet == 127:
                logger.info("type: %d, threat: %d, days: %d, ip: %s", visitor_type, threat_score, days, ip)
                blocked = visitor_type > SUSPICIOUS_TYPE or threat_score >= MAX_THREAT_SCORE_ALLOWED
            else:
                logger.info("IP is not listed in http:BL.")
        data = IPData(blocked_until=BLOCKED_IP if blocked else VALID_IP)
        with self.lock:
            self.tracker[ip] = data