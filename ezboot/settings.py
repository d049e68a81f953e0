from __future__ import annotations

"""Bootstrap configuration helpers (env → settings).

Everything the storefront needs at start-up is read from the process
environment (optionally seeded from a ``.env`` file by the package import).
Keep this module import-cheap: it is loaded by the service, the CLI script and
the tests alike.
"""

# Standard library
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Sequence

__all__ = [
    "BootstrapSettings",
    "parse_array",
    "parse_boolean",
    "parse_json",
    "parse_number",
    "collect_origins",
]

logger = logging.getLogger("ezboot.settings")

_TRUTHY = {"true", "1", "yes"}

DEFAULT_PROBE_PATH = "/guest/comm/config"
DEFAULT_PROBE_TIMEOUT_MS = 2000
DEFAULT_ROUND_MARGIN_MS = 500
DEFAULT_CACHE_TTL_MS = 5 * 60 * 1000


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def parse_boolean(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if not value.strip():
            return default
        return value.strip().lower() in _TRUTHY
    return default


def parse_number(value: Any, default: float = 0) -> float:
    """Return *value* as a number, or *default* when it does not parse.

    Integers stay integers so millisecond settings keep their type.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    if not text:
        return default
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return default


def parse_array(value: Any, default: Sequence[str] = ()) -> tuple[str, ...]:
    """Split a comma-separated string into trimmed, non-empty items."""
    if value is None:
        return tuple(default)
    if isinstance(value, str):
        if not value.strip():
            return tuple(default)
        items = value.split(",")
    else:
        items = [str(item) for item in value]
    return tuple(item.strip() for item in items if item and item.strip())


def parse_json(value: Any, default: Any = None) -> Any:
    if not isinstance(value, str) or not value.strip():
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        logger.warning("settings.json_parse_failed", extra={"value": value, "error": str(exc)})
        return default


def collect_origins(env: Mapping[str, str] | None = None) -> list[str]:
    """Collect allowed CORS origins from the environment.

    Falls back to the local Vite dev-server (localhost:5173) so a storefront
    running in dev mode can still fetch its configuration.
    """
    env = os.environ if env is None else env
    origins: list[str] = []
    for name in ("FRONTEND_ORIGIN", "EXTRA_ORIGIN"):
        if (val := env.get(name)):
            origins.extend(parse_array(val))

    if not origins:
        origins.append("http://localhost:5173")
    return origins


# ---------------------------------------------------------------------------
# Settings object
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BootstrapSettings:
    """Resolved start-up configuration for one storefront deployment."""

    app_env: str = "production"
    panel_type: str = "V2board"

    # API origin resolution
    url_mode: str = "static"
    static_api_urls: tuple[str, ...] = ()
    probe_path: str = DEFAULT_PROBE_PATH
    probe_timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS
    round_budget_ms: int = DEFAULT_PROBE_TIMEOUT_MS + DEFAULT_ROUND_MARGIN_MS
    cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS
    default_api_url: str = ""

    # Middleware proxy
    middleware_enabled: bool = False
    middleware_url: str = ""
    middleware_path: str = "/ez/ez"
    middleware_key: str = ""

    # Auto mode
    auto_use_same_protocol: bool = True
    auto_append_api_path: bool = True
    auto_api_path: str = "/api/v1"

    # Security / request shaping
    enable_domain_check: bool = False
    authorized_domains: tuple[str, ...] = ()
    custom_headers_enabled: bool = False
    custom_headers: Dict[str, str] = field(default_factory=dict)
    allowed_origins: tuple[str, ...] = ("http://localhost:5173",)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "BootstrapSettings":
        env = os.environ if env is None else env

        probe_timeout_ms = max(1, int(parse_number(env.get("API_PROBE_TIMEOUT_MS"), DEFAULT_PROBE_TIMEOUT_MS)))
        round_budget_ms = max(
            1,
            int(parse_number(env.get("API_ROUND_BUDGET_MS"), probe_timeout_ms + DEFAULT_ROUND_MARGIN_MS)),
        )
        cache_ttl_ms = max(0, int(parse_number(env.get("API_CACHE_TTL_MS"), DEFAULT_CACHE_TTL_MS)))

        headers = parse_json(env.get("CUSTOM_HEADERS"), {})
        if not isinstance(headers, dict):
            logger.warning("settings.custom_headers_ignored", extra={"reason": "not an object"})
            headers = {}

        return cls(
            app_env=env.get("APP_ENV") or "production",
            panel_type=env.get("PANEL_TYPE") or "V2board",
            url_mode=(env.get("API_URL_MODE") or "static").strip().lower(),
            static_api_urls=parse_array(env.get("STATIC_API_URLS")),
            probe_path=env.get("API_PROBE_PATH") or DEFAULT_PROBE_PATH,
            probe_timeout_ms=probe_timeout_ms,
            round_budget_ms=round_budget_ms,
            cache_ttl_ms=cache_ttl_ms,
            default_api_url=(env.get("DEFAULT_API_BASE_URL") or "").strip().rstrip("/"),
            middleware_enabled=parse_boolean(env.get("API_MIDDLEWARE_ENABLED")),
            middleware_url=(env.get("API_MIDDLEWARE_URL") or "").strip(),
            middleware_path=env.get("API_MIDDLEWARE_PATH") or "/ez/ez",
            middleware_key=(env.get("API_MIDDLEWARE_KEY") or "").strip(),
            auto_use_same_protocol=parse_boolean(env.get("AUTO_USE_SAME_PROTOCOL"), True),
            auto_append_api_path=parse_boolean(env.get("AUTO_APPEND_API_PATH"), True),
            auto_api_path=env.get("AUTO_API_PATH") or "/api/v1",
            enable_domain_check=parse_boolean(env.get("SECURITY_ENABLE_FRONTEND_DOMAIN_CHECK")),
            authorized_domains=tuple(d.lower() for d in parse_array(env.get("AUTHORIZED_DOMAINS"))),
            custom_headers_enabled=parse_boolean(env.get("CUSTOM_HEADERS_ENABLED")),
            custom_headers={str(k): str(v) for k, v in headers.items()},
            allowed_origins=tuple(collect_origins(env)),
        )
