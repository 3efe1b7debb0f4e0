import ipaddress

from woofwaf.security import Error, HttpRequest
from woofwaf.sqli import SQLInjectionChecker

ADDRESS = ipaddress.ip_address("192.0.2.1")


def _check(**kwargs):
    return SQLInjectionChecker().check(HttpRequest(**kwargs), ADDRESS)


def test_clean_request_allowed():
    result = _check(target="/index.html", headers={"User-Agent": "Mozilla/5.0"}, body="name=bob")
    assert result.allowed is True
    assert result.error is Error.NONE


def test_body_union_select():
    result = _check(method="POST", body="id=1 UNION SELECT name FROM users")
    assert result.allowed is False
    assert result.error is Error.SQLI
    assert result.message == "SQL Injection pattern detected in request body"


def test_header_quote():
    result = _check(headers={"User-Agent": "' or 1=1"})
    assert result.error is Error.SQLI
    assert result.message == "SQL Injection pattern detected in header: User-Agent"


def test_encoded_quote_in_cookie():
    result = _check(headers={"Cookie": "session=%27abc"})
    assert result.message == "SQL Injection pattern detected in header: Cookie"


def test_comment_in_url():
    result = _check(target="/search?q=1--")
    assert result.message == "SQL Injection pattern detected in URL"


def test_word_boundary_respected():
    result = _check(method="POST", body="selection=updated_value")
    assert result.allowed is True


def test_case_insensitive():
    result = _check(method="POST", body="DrOp table x")
    assert result.error is Error.SQLI


def test_unlisted_header_ignored():
    result = _check(headers={"X-Custom": "' drop"})
    assert result.allowed is True


def test_header_reported_before_body():
    result = _check(headers={"Referer": "x' --"}, body="union")
    assert result.message == "SQL Injection pattern detected in header: Referer"