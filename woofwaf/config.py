"""Loading of the firewall's JSON settings files."""

from __future__ import annotations

import functools
import json
import re
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Union

from .security import Error

PathLike = Union[str, Path]

_INT_PREFIX = re.compile(r"\s*[+-]?\d+")


class ConfigError(RuntimeError):
    """A settings file could not be read or understood."""


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _items(data: Any) -> Iterator[tuple[str, Any]]:
    if isinstance(data, dict):
        yield from data.items()
    elif isinstance(data, list):
        for index, value in enumerate(data):
            yield str(index), value
    else:
        yield "", data


def _read_json(path: PathLike) -> Any:
    try:
        with open(path, encoding="utf-8") as handle:
            return json.load(handle)
    except OSError as exc:
        raise ConfigError(f"Could not open the JSON file: {path}") from exc


def load_json_arrays(path: PathLike) -> dict[str, list[str]]:
    """Read a JSON object and keep its array members as lists of strings.

    String items are kept; other items are stored as compact JSON.
    """
    try:
        data = _read_json(path)
    except (ConfigError, ValueError) as exc:
        raise ConfigError(f"Error loading JSON arrays: {exc}") from exc
    return {
        key: [item if isinstance(item, str) else _dump(item) for item in value]
        for key, value in _items(data)
        if isinstance(value, list)
    }


def _to_int(token: str) -> int:
    match = _INT_PREFIX.match(token)
    if match is None:
        raise ValueError(f"Invalid error value: {token}")
    return int(match.group())


def parse_error_codes(text: str) -> list[Error]:
    """Parse a string such as '(1.2.4)' into the error kinds it names."""
    if not text:
        raise ValueError("Empty error code list")
    inner = text[1:-1] if len(text) >= 2 else ""
    tokens = inner.split(".")
    if tokens[-1] == "":
        tokens.pop()
    codes = []
    for token in tokens:
        value = _to_int(token)
        if not Error.DDOS <= value <= Error.CSRF:
            raise ValueError(f"Invalid error value: {token}")
        codes.append(Error(value))
    return codes


class Config:
    """Lazily loaded general and per-path settings."""

    def __init__(
        self,
        settings_path: PathLike = "Settings.json",
        sub_settings_path: PathLike = "SubSettings.json",
    ) -> None:
        self.settings_path = Path(settings_path)
        self.sub_settings_path = Path(sub_settings_path)
        self._settings: dict[str, str] = {}
        self._subdirectories: dict[str, list[Error]] = {}
        self._lock = threading.Lock()

    def settings(self) -> dict[str, str]:
        """Return each top-level setting rendered as compact JSON text."""
        with self._lock:
            if not self._settings:
                self._settings = self._load_settings()
            return dict(self._settings)

    def subdirectory_settings(self) -> dict[str, list[Error]]:
        """Return the checks to run for each URL pattern."""
        with self._lock:
            if not self._subdirectories:
                self._subdirectories = self._load_subdirectories()
            return {key: list(value) for key, value in self._subdirectories.items()}

    def _load_settings(self) -> dict[str, str]:
        try:
            data = _read_json(self.settings_path)
        except (ConfigError, ValueError) as exc:
            raise ConfigError(f"Error loading settings: {exc}") from exc
        return {key: _dump(value) for key, value in _items(data)}

    def _load_subdirectories(self) -> dict[str, list[Error]]:
        try:
            data = _read_json(self.sub_settings_path)
            result = {}
            for key, value in _items(data):
                if not isinstance(value, str):
                    raise ValueError(f"Value for {key!r} is not a string")
                result[key] = parse_error_codes(value)
            return result
        except (ConfigError, ValueError) as exc:
            raise ConfigError(f"Error loading subdirectory settings: {exc}") from exc


@functools.lru_cache(maxsize=None)
def get_config() -> Config:
    """Return the process-wide configuration read from the working directory."""
    return Config()