"""A web application firewall that runs as a reverse proxy in front of an HTTP server.

It checks requests for floods, SQL injection, cross-site scripting and
cross-site request forgery before forwarding them.
"""

__version__ = "0.1.0"