import json

import pytest

from woofwaf.config import Config, ConfigError, get_config, load_json_arrays, parse_error_codes
from woofwaf.security import Error


def _write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_load_arrays_keeps_only_arrays(tmp_path):
    path = _write(tmp_path / "refs.json", {"k": ["a", 1, {"x": 2}], "n": 5})
    result = load_json_arrays(path)
    assert list(result) == ["k"]
    assert result["k"][0] == "a"
    assert json.loads(result["k"][1]) == 1
    assert result["k"][2] == '{"x":2}'


def test_load_arrays_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="Error loading JSON arrays"):
        load_json_arrays(tmp_path / "absent.json")


def test_load_arrays_bad_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_json_arrays(path)


def test_parse_codes():
    assert parse_error_codes("(1.2)") == [Error.DDOS, Error.SQLI]
    assert parse_error_codes("(4)") == [Error.CSRF]


def test_parse_empty_brackets():
    assert parse_error_codes("()") == []


@pytest.mark.parametrize("text", ["(5)", "(0)", "(1..2)", "(x)", ""])
def test_parse_invalid(text):
    with pytest.raises(ValueError):
        parse_error_codes(text)


def test_settings_values_are_json_text(tmp_path):
    settings = _write(tmp_path / "Settings.json", {"client_port": 8080, "server_ip": "127.0.0.1"})
    config = Config(settings, tmp_path / "SubSettings.json")
    values = config.settings()
    assert int(values["client_port"]) == 8080
    assert json.loads(values["server_ip"]) == "127.0.0.1"


def test_settings_returns_copy(tmp_path):
    settings = _write(tmp_path / "Settings.json", {"request_limit": 10})
    config = Config(settings, tmp_path / "SubSettings.json")
    config.settings().clear()
    assert "request_limit" in config.settings()


def test_missing_settings_file(tmp_path):
    config = Config(tmp_path / "none.json", tmp_path / "none2.json")
    with pytest.raises(ConfigError, match="Error loading settings"):
        config.settings()


def test_subdirectory_settings(tmp_path):
    sub = _write(tmp_path / "SubSettings.json", {"/api": "(2.3)", "/": "(1)"})
    config = Config(tmp_path / "Settings.json", sub)
    assert config.subdirectory_settings() == {"/api": [Error.SQLI, Error.XSS], "/": [Error.DDOS]}


def test_subdirectory_value_must_be_string(tmp_path):
    sub = _write(tmp_path / "SubSettings.json", {"/api": [1, 2]})
    config = Config(tmp_path / "Settings.json", sub)
    with pytest.raises(ConfigError, match="Error loading subdirectory settings"):
        config.subdirectory_settings()


def test_subdirectory_invalid_code(tmp_path):
    sub = _write(tmp_path / "SubSettings.json", {"/api": "(9)"})
    config = Config(tmp_path / "Settings.json", sub)
    with pytest.raises(ConfigError):
        config.subdirectory_settings()


def test_get_config_is_shared():
    first = get_config()
    second = get_config()
    assert isinstance(first, Config)
    assert second is first