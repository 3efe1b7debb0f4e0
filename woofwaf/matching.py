"""Pattern lookup by URL and sequential running of checkers."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Optional, TypeVar

from .security import Error, HttpRequest, IPAddress, SecurityChecker, SecurityCheckResult
from .urls import url_decode

T = TypeVar("T")


def find_best_match(url: str, patterns: Mapping[str, T]) -> Optional[T]:
    """Return the value for the pattern that best fits a URL.

    The URL is percent-decoded first. An exact key wins; otherwise the
    longest key that matches as a regular expression anywhere in the URL
    is used. Keys that are not valid expressions are skipped. Returns
    None when nothing fits.
    """
    decoded = url_decode(url)
    if decoded in patterns:
        return patterns[decoded]

    best: Optional[str] = None
    best_length = 0
    for pattern in patterns:
        try:
            found = re.search(pattern, decoded)
        except re.error:
            continue
        if found and len(pattern) > best_length:
            best_length = len(pattern)
            best = pattern

    return patterns[best] if best is not None else None


def run_security_checks(
    request: HttpRequest,
    client_address: IPAddress,
    checkers: Iterable[Optional[SecurityChecker]],
) -> SecurityCheckResult:
    """Run checkers in order and return the first violation, if any."""
    for checker in checkers:
        if checker is None:
            continue
        result = checker.check(request, client_address)
        if not result.allowed:
            return SecurityCheckResult(False, result.error, result.message)
    return SecurityCheckResult(True, Error.NONE, "")