from __future__ import annotations

"""Assemble the runtime configuration handed to the storefront front-end.

The API base URL is chosen in this order:

1. middleware proxy, when enabled and a URL is configured;
2. ``static`` mode – one configured URL is used as-is, several are handed to
   the :class:`~ezboot.utils.endpoint_resolver.EndpointResolver`;
3. ``auto`` mode – derived from the page the storefront was loaded from;
4. the configured default (empty string = same-origin relative requests).
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from ezboot.models import EmptyCatalogError, RuntimeConfigResponse
from ezboot.settings import BootstrapSettings
from ezboot.utils.endpoint_catalog import load_catalog
from ezboot.utils.endpoint_resolver import EndpointResolver

__all__ = [
    "build_runtime_config",
    "get_api_base_url",
    "is_authorized_domain",
    "is_xboard",
    "is_xiao_v2board",
]

logger = logging.getLogger("ezboot.config")


# ---------------------------------------------------------------------------
# Panel type
# ---------------------------------------------------------------------------

def is_xiao_v2board(settings: BootstrapSettings) -> bool:
    return settings.panel_type == "Xiao-V2board"


def is_xboard(settings: BootstrapSettings) -> bool:
    return settings.panel_type == "Xboard"


# ---------------------------------------------------------------------------
# API base URL
# ---------------------------------------------------------------------------

def _middleware_url(settings: BootstrapSettings) -> str:
    url = settings.middleware_url.rstrip("/")
    if settings.middleware_key:
        return url
    path = settings.middleware_path
    if not path.startswith("/"):
        path = f"/{path}"
    return url + path


def _static_url(settings: BootstrapSettings, resolver: Optional[EndpointResolver]) -> Optional[str]:
    catalog = load_catalog(settings.static_api_urls)
    if len(catalog) > 1 and resolver is not None:
        try:
            return resolver.get_current_url(catalog)
        except EmptyCatalogError:
            return None
    if catalog:
        return catalog[0].url
    return None


def _auto_url(settings: BootstrapSettings, page_url: Optional[str]) -> Optional[str]:
    if not page_url:
        return None
    parts = urlsplit(page_url)
    try:
        hostname, port = parts.hostname, parts.port
    except ValueError:
        return None
    if not parts.scheme or not hostname:
        return None

    # Rebuilt from hostname and port so userinfo never leaks into the API base.
    host = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None:
        host = f"{host}:{port}"
    scheme = parts.scheme if settings.auto_use_same_protocol else "https"
    base = f"{scheme}://{host}"
    if settings.auto_append_api_path:
        path = settings.auto_api_path
        base += path if path.startswith("/") else f"/{path}"
    return base.rstrip("/")


def get_api_base_url(
    settings: BootstrapSettings,
    resolver: Optional[EndpointResolver] = None,
    page_url: Optional[str] = None,
) -> str:
    """Return the API base URL the storefront should use right now.

    Never waits on the network: in multi-URL static mode the resolver answers
    from its cache or with the first configured URL.
    """
    if settings.middleware_enabled and settings.middleware_url.strip():
        return _middleware_url(settings)

    if settings.url_mode == "static" and settings.static_api_urls:
        url = _static_url(settings, resolver)
        if url:
            return url

    if settings.url_mode == "auto":
        url = _auto_url(settings, page_url)
        if url:
            return url
        logger.error("config.auto_url_failed", extra={"page_url": page_url})
        fallback = load_catalog(settings.static_api_urls)
        if fallback:
            return fallback[0].url

    return settings.default_api_url


# ---------------------------------------------------------------------------
# Access restriction
# ---------------------------------------------------------------------------

def is_authorized_domain(settings: BootstrapSettings, host: Optional[str]) -> bool:
    """Check the storefront host against the authorized domain list.

    Always ``True`` when the check is disabled. Sub-domains of an authorized
    domain are accepted; ports are ignored.

    Examples:
        shop.example.com   vs ["example.com"] -> True
        evil-example.com   vs ["example.com"] -> False
    """
    if not settings.enable_domain_check:
        return True
    if not host:
        return False
    hostname = host.strip().lower().split(":", 1)[0]
    for domain in settings.authorized_domains:
        if hostname == domain or hostname.endswith(f".{domain}"):
            return True
    return False


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------

def build_runtime_config(
    settings: BootstrapSettings,
    resolver: Optional[EndpointResolver] = None,
    page_url: Optional[str] = None,
) -> RuntimeConfigResponse:
    headers: Dict[str, Any] = settings.custom_headers if settings.custom_headers_enabled else {}
    return RuntimeConfigResponse(
        api_base_url=get_api_base_url(settings, resolver, page_url),
        url_mode=settings.url_mode,
        panel_type=settings.panel_type,
        is_xboard=is_xboard(settings),
        is_xiao_v2board=is_xiao_v2board(settings),
        custom_headers=dict(headers),
        domain_check_enabled=settings.enable_domain_check,
    )
