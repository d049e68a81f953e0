"""Entry-point for the bootstrap ASGI app.

This module constructs the FastAPI instance, wires global middleware, owns
the endpoint resolver for the app's lifetime, and exposes the `app` variable
ASGI servers import.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from contextvars import ContextVar
from time import perf_counter
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from ezboot import __version__
from ezboot.routers import config_routes
from ezboot.settings import BootstrapSettings
from ezboot.utils.endpoint_catalog import load_catalog
from ezboot.utils.endpoint_resolver import EndpointResolver
from ezboot.utils.limiter import limiter
from ezboot.utils.logger import configure_logging, logger


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach request-level context vars for structured logging."""

    _request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:  # type: ignore[override]
        start = perf_counter()
        request_id = request.headers.get("X-Request-Id", os.urandom(4).hex())
        token = self._request_id_ctx.set(request_id)
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            duration_ms = (perf_counter() - start) * 1000
            logger.info(
                "request.complete",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": status_code,
                    "duration_ms": round(duration_ms, 2),
                    "request_id": request_id,
                },
            )
            self._request_id_ctx.reset(token)
        return response


def _warm_up(settings: BootstrapSettings, resolver: EndpointResolver) -> None:
    """Kick the first probe round so the first config fetch sees a warm cache."""
    catalog = load_catalog(settings.static_api_urls)
    if settings.middleware_enabled or settings.url_mode != "static" or len(catalog) < 2:
        return
    resolver.get_current(catalog)
    logger.info("resolver.warm_up_started", extra={"candidates": len(catalog)})


def create_app(
    settings: Optional[BootstrapSettings] = None,
    resolver: Optional[EndpointResolver] = None,
) -> FastAPI:
    configure_logging()

    settings = settings or BootstrapSettings.from_env()
    resolver = resolver or EndpointResolver.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _warm_up(settings, resolver)
        try:
            yield
        finally:
            await resolver.aclose()

    app = FastAPI(
        title="ezboot Storefront Bootstrap API",
        version=__version__,
        docs_url="/docs" if settings.app_env != "production" else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.app_env != "production" else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.resolver = resolver

    # Global middleware
    app.add_middleware(RequestContextMiddleware)
    # Rate limiting middleware (SlowAPI expects limiter via app.state)
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # The storefront fetches its config cross-origin before first paint.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-Id"],
        max_age=600,
    )

    # Health check
    @app.get("/")
    async def root() -> Dict[str, Any]:  # pylint: disable=unused-variable
        return {"status": "ok", "resolver": resolver.state.value}

    app.include_router(config_routes.router)

    return app


# The object ASGI servers import
app = create_app()
