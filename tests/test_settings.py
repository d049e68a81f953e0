import logging

import pytest

from ezboot.settings import (
    BootstrapSettings,
    collect_origins,
    parse_array,
    parse_boolean,
    parse_json,
    parse_number,
)


@pytest.mark.parametrize(
    "value,default,expected",
    [
        (True, False, True),
        ("true", False, True),
        ("TRUE", False, True),
        ("1", False, True),
        ("false", True, False),
        ("nope", True, False),
        ("", True, True),
        (None, True, True),
    ],
)
def test_parse_boolean(value, default, expected):
    assert parse_boolean(value, default) is expected


def test_parse_number():
    assert parse_number("2500", 0) == 2500
    assert isinstance(parse_number("2500", 0), int)
    assert parse_number("1.5", 0) == 1.5
    assert parse_number("abc", 7) == 7
    assert parse_number(None, 7) == 7
    assert parse_number(" ", 7) == 7


def test_parse_array():
    assert parse_array(" a, b ,,c ") == ("a", "b", "c")
    assert parse_array("", ["x"]) == ("x",)
    assert parse_array(None) == ()


def test_parse_json_logs_and_falls_back(caplog):
    with caplog.at_level(logging.WARNING, logger="ezboot.settings"):
        assert parse_json("{not json", {"k": "v"}) == {"k": "v"}
    assert "settings.json_parse_failed" in caplog.text
    assert parse_json('{"X-Shop": "1"}', {}) == {"X-Shop": "1"}


def test_from_env_defaults():
    settings = BootstrapSettings.from_env({})

    assert settings.url_mode == "static"
    assert settings.static_api_urls == ()
    assert settings.probe_timeout_ms == 2000
    assert settings.round_budget_ms == 2500
    assert settings.cache_ttl_ms == 300_000
    assert settings.middleware_path == "/ez/ez"
    assert settings.auto_api_path == "/api/v1"
    assert settings.default_api_url == ""
    assert settings.panel_type == "V2board"


def test_from_env_reads_resolver_settings():
    settings = BootstrapSettings.from_env(
        {
            "API_URL_MODE": " AUTO ",
            "STATIC_API_URLS": "https://a.example, https://b.example",
            "API_PROBE_TIMEOUT_MS": "800",
            "API_CACHE_TTL_MS": "1000",
            "API_PROBE_PATH": "/ping",
        }
    )

    assert settings.url_mode == "auto"
    assert settings.static_api_urls == ("https://a.example", "https://b.example")
    assert settings.probe_timeout_ms == 800
    # Round budget follows the probe timeout unless set explicitly
    assert settings.round_budget_ms == 1300
    assert settings.cache_ttl_ms == 1000
    assert settings.probe_path == "/ping"


def test_from_env_clamps_bad_timeouts():
    settings = BootstrapSettings.from_env({"API_PROBE_TIMEOUT_MS": "-5", "API_ROUND_BUDGET_MS": "0"})
    assert settings.probe_timeout_ms == 1
    assert settings.round_budget_ms == 1


def test_from_env_ignores_non_object_custom_headers():
    settings = BootstrapSettings.from_env({"CUSTOM_HEADERS_ENABLED": "true", "CUSTOM_HEADERS": "[1, 2]"})
    assert settings.custom_headers_enabled is True
    assert settings.custom_headers == {}


def test_collect_origins():
    assert collect_origins({"FRONTEND_ORIGIN": "https://shop.test", "EXTRA_ORIGIN": "https://a.test,https://b.test"}) == [
        "https://shop.test",
        "https://a.test",
        "https://b.test",
    ]
    assert collect_origins({}) == ["http://localhost:5173"]
