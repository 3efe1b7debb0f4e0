"""Detection of cross-site scripting patterns in requests."""

from __future__ import annotations

import re

from .security import Error, HttpRequest, IPAddress, SecurityChecker, SecurityCheckResult
from .urls import url_decode

_ANY = r"[^\n\r\u2028\u2029]"

_BLACKLIST = re.compile(
    rf"<{_ANY}*?(script|alert|eval|onerror|onload|document\.cookie|window\.location){_ANY}*?>"
    r"|javascript:",
    re.IGNORECASE,
)


class XSSChecker(SecurityChecker):
    """Flags script tags, event handlers and javascript: URLs anywhere in a request."""

    def check(self, request: HttpRequest, client_address: IPAddress) -> SecurityCheckResult:
        full_request = url_decode(request.serialize())
        if _BLACKLIST.search(full_request):
            return SecurityCheckResult(
                False, Error.XSS, "Cross-Site Scripting (XSS) pattern detected in request"
            )
        return SecurityCheckResult(True, Error.NONE, "")