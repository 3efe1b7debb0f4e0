"""Detection of SQL injection patterns in requests."""

from __future__ import annotations

import re

from .security import Error, HttpRequest, IPAddress, SecurityChecker, SecurityCheckResult
from .urls import url_decode

_BLACKLIST = re.compile(
    r"""\b(select|union|insert|delete|update|drop|alter|exec|into|outfile|load_file"""
    r"""|information_schema|benchmark)\b|(--|#|/\*|\*/|['"`])""",
    re.IGNORECASE | re.ASCII,
)

_HIGH_RISK_HEADERS = (
    "User-Agent",
    "Referer",
    "Cookie",
    "X-Forwarded-For",
    "Authorization",
    "Content-Type",
)


class SQLInjectionChecker(SecurityChecker):
    """Flags SQL keywords, comments and quotes in headers, body and URL."""

    @staticmethod
    def _suspicious(value: str) -> bool:
        return _BLACKLIST.search(url_decode(value)) is not None

    def check(self, request: HttpRequest, client_address: IPAddress) -> SecurityCheckResult:
        for name in _HIGH_RISK_HEADERS:
            if self._suspicious(request.header(name)):
                return SecurityCheckResult(
                    False, Error.SQLI, f"SQL Injection pattern detected in header: {name}"
                )

        if request.body and self._suspicious(request.body):
            return SecurityCheckResult(
                False, Error.SQLI, "SQL Injection pattern detected in request body"
            )

        if self._suspicious(request.target):
            return SecurityCheckResult(False, Error.SQLI, "SQL Injection pattern detected in URL")

        return SecurityCheckResult(True, Error.NONE, "")