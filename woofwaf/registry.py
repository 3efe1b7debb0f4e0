"""Shared checker instances, handed out by the kinds of violation to look for."""

from __future__ import annotations

import re
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Optional, Union

from .config import Config, get_config, load_json_arrays
from .csrf import CSRFChecker
from .ddos import DDOSChecker
from .security import Error, SecurityChecker
from .sqli import SQLInjectionChecker
from .xss import XSSChecker

CSRF_ALLOWED_REFERERS_PATH = "csrfAllowedReferers.json"

_INT_PREFIX = re.compile(r"\s*[+-]?\d+")


def _atoi(text: str) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group()) if match else 0


class CheckerRegistry:
    """Creates each checker once and returns the ones a request path asks for."""

    def __init__(
        self,
        config: Optional[Config] = None,
        csrf_path: Union[str, Path] = CSRF_ALLOWED_REFERERS_PATH,
    ) -> None:
        self.config = config if config is not None else get_config()
        self.csrf_path = Path(csrf_path)
        self._checkers: dict[Error, SecurityChecker] = {}
        self._lock = threading.Lock()
        self._factories: dict[Error, Callable[[], SecurityChecker]] = {
            Error.DDOS: self._make_ddos,
            Error.SQLI: SQLInjectionChecker,
            Error.XSS: XSSChecker,
            Error.CSRF: self._make_csrf,
        }

    def _make_ddos(self) -> DDOSChecker:
        settings = self.config.settings()
        return DDOSChecker(
            _atoi(settings["max_active_connections_per_ip"]),
            _atoi(settings["request_limit"]),
            _atoi(settings["block_time"]),
            _atoi(settings["seconds_per_limit"]),
        )

    def _make_csrf(self) -> CSRFChecker:
        return CSRFChecker(load_json_arrays(self.csrf_path))

    def _checker(self, kind: Error) -> SecurityChecker:
        with self._lock:
            checker = self._checkers.get(kind)
            if checker is None:
                checker = self._factories[kind]()
                self._checkers[kind] = checker
            return checker

    def get_checkers(self, error_types: Iterable[Error]) -> list[SecurityChecker]:
        """Return the checkers for the given kinds, the rate limiter always first."""
        checkers: list[SecurityChecker] = []
        for kind in error_types:
            if kind not in self._factories:
                continue
            checker = self._checker(kind)
            if kind is Error.DDOS:
                checkers.insert(0, checker)
            else:
                checkers.append(checker)
        return checkers