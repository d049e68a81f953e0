"""FastAPI dependency providers for the settings and the endpoint resolver."""

from __future__ import annotations

from fastapi import Request

from ezboot.settings import BootstrapSettings
from ezboot.utils.endpoint_resolver import EndpointResolver


def get_settings(request: Request) -> BootstrapSettings:
    """Return the settings the running app was created with."""

    return request.app.state.settings


def get_resolver(request: Request) -> EndpointResolver:
    """Return the app-wide resolver.

    One resolver (and therefore one resolution cache) lives for the lifetime
    of the app, the same way one cache lives for a browser page session.
    Tests build their own app around a resolver with fake probes.
    """

    return request.app.state.resolver
