# woofwaf

woofwaf is a small web application firewall. It listens for HTTP/1.x clients
and checks each request before passing it on to the web server behind it. A
request that fails a check never reaches the server. The client gets a
`403 Forbidden` HTML page instead, and the page names the kind of violation.

The following checks are available:

| Code | Check | What it looks for |
|------|-------|-------------------|
| 1 | DDoS | Requests per IP within a window of `seconds_per_limit` seconds, and connections per IP. Once a limit is reached the IP is blocked for `block_time` seconds. The request limit is adjusted every window from a z-score of recent request counts: it tightens when traffic spikes and relaxes when it drops, staying between half and one and a half times `request_limit`. IPv4 clients are looked up in Project Honey Pot's http:BL, and listed threats are blocked. |
| 2 | SQL injection | SQL keywords, comment markers and quotes. The check searches the `User-Agent`, `Referer`, `Cookie`, `X-Forwarded-For`, `Authorization` and `Content-Type` headers, the body and the URL, after percent-decoding. |
| 3 | XSS | Script tags, event handlers such as `onerror`, and `javascript:` URLs anywhere in the percent-decoded request. |
| 4 | CSRF | The `Referer` and `Origin` of requests other than GET and HEAD, checked against a whitelist. |

When a path asks for the DDoS check, that check always runs first, so that a
flood is turned away cheaply. The first violation found decides the response.

## Installation

```
pip install .
```

## Running

Start the firewall from the directory that holds its configuration files:

```
woofwaf
```

It listens on `0.0.0.0` at `client_port` and forwards allowed requests to
`server_ip:server_port`. Other file names can be given for the two settings
files:

```
woofwaf --settings Settings.json --sub-settings SubSettings.json
```

The command runs until interrupted. It exits with status 1 and a message on
standard error if the settings cannot be read or are invalid.

## Configuration

### `Settings.json`

This file holds flat key/value pairs:

```json
{
  "client_port": 8080,
  "server_ip": "127.0.0.1",
  "server_port": 8000,
  "max_active_connections_per_ip": 20,
  "request_limit": 100,
  "block_time": 60,
  "seconds_per_limit": 10
}
```

`server_ip` must be a string holding an IP address. The last four keys are
needed only when some path uses the DDoS check.

### `SubSettings.json`

This file says which checks apply to which paths. Each key is an exact path
or a regular expression, which is searched for anywhere in the percent-decoded
request target. Each value is a string of check codes in parentheses,
separated by dots. An exact match wins; otherwise the longest matching
pattern wins. A request whose path matches nothing is forwarded unchecked.

```json
{
  "/": "(1.2.3.4)",
  "/static/.*": "(1)",
  "/api/.*": "(1.2.4)"
}
```

Codes outside 1–4 are rejected when the file is loaded.

### `csrfAllowedReferers.json`

This file is read from the working directory when the CSRF check is first
needed. Each key is a pattern that is matched against the host part of the
`Referer` or `Origin` header. Its value lists the hosts that are allowed:

```json
{
  "example.com": ["example.com", "www.example.com"]
}
```

### Honey Pot key

For the DDoS check, the access key for http:BL is read from the first line
of the file `../honeypot_key`, for example:

```
placeholder
```

A client IP that has not been seen before is let through while its lookup
runs in the background. If the lookup fails, the IP is treated as valid. IPv6
clients are not looked up, so they are never rate limited.

## Using the pieces as a library

The checks and helpers can be used on their own:

```python
from woofwaf.urls import get_base_url, url_decode
from woofwaf.config import parse_error_codes
from woofwaf.matching import find_best_match
from woofwaf.security import Error

get_base_url("http://example.com/page.php")   # "example.com"
url_decode("%3Cscript%3E")                    # "<script>"
parse_error_codes("(1.2)")                    # [Error.DDOS, Error.SQLI]
find_best_match("/login", {"/login": [Error.SQLI]})  # [Error.SQLI]
```

Requests are represented by `woofwaf.security.HttpRequest`. Every checker
(`SQLInjectionChecker`, `XSSChecker`, `CSRFChecker`, `DDOSChecker`) has a
`check(request, client_address)` method that returns a `SecurityCheckResult`
with `allowed`, `error` and `message`. `run_security_checks` runs a list of
checkers in order and returns the first violation. `CheckerRegistry` creates
each checker once and hands them out by `Error` kind. `Config` loads the two
settings files lazily.

## What it does not do

- It speaks plain HTTP/1.x only: no TLS and no HTTP/2.
- Each forwarded request opens a new connection to the server.
- It runs in a single asyncio event loop; there is no worker pool.
- Apart from the logging module, it keeps no record of blocked requests.

## Tests

```
pip install ".[test]"
pytest
```