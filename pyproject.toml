[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "woofwaf"
version = "0.1.0"
description = "A small web application firewall that runs as a reverse proxy in front of an HTTP server"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "waf",
    "firewall",
    "reverse-proxy",
    "http",
    "sql-injection",
    "xss",
    "csrf",
    "ddos",
    "rate-limiting",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Security",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
woofwaf = "woofwaf.server:main"

[tool.hatch.build.targets.wheel]
packages = ["woofwaf"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
