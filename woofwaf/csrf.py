"""Cross-site request forgery checks based on Referer and Origin."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from .matching import find_best_match
from .security import Error, HttpRequest, IPAddress, SecurityChecker, SecurityCheckResult
from .urls import get_base_url

_SAFE_METHODS = frozenset({"GET", "HEAD"})


class CSRFChecker(SecurityChecker):
    """Rejects state-changing requests whose referer or origin is not whitelisted."""

    def __init__(self, whitelist: Mapping[str, Sequence[str]]) -> None:
        self._whitelist = {pattern: list(allowed) for pattern, allowed in whitelist.items()}

    def is_referer_allowed(self, host: str, referer: str) -> bool:
        """Whether a referer's host appears in the whitelist entry that matches it."""
        if not referer:
            return True
        base = get_base_url(referer)
        allowed = find_best_match(base, self._whitelist) or []
        return base in allowed

    def check(self, request: HttpRequest, client_address: IPAddress) -> SecurityCheckResult:
        referer = request.header("Referer")
        origin = request.header("Origin")
        host = request.header("Host")

        if request.method in _SAFE_METHODS:
            return SecurityCheckResult(True, Error.NONE, "")

        if referer and not self.is_referer_allowed(host, referer):
            return SecurityCheckResult(False, Error.CSRF, f"Invalid referer detected: {referer}")

        if origin and not self.is_referer_allowed(host, origin):
            return SecurityCheckResult(False, Error.CSRF, f"Invalid origin detected: {origin}")

        return SecurityCheckResult(True, Error.NONE, "")