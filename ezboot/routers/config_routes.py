"""Runtime configuration routes – what the storefront fetches before first paint."""

from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ezboot.models import (
    EmptyCatalogError,
    ProbeResultModel,
    ResolverStatusResponse,
    RuntimeConfigResponse,
    WinnerResponse,
)
from ezboot.settings import BootstrapSettings
from ezboot.utils.base_config import build_runtime_config, is_authorized_domain
from ezboot.utils.dependencies import get_resolver, get_settings
from ezboot.utils.endpoint_catalog import load_catalog
from ezboot.utils.endpoint_resolver import EndpointResolver
from ezboot.utils.limiter import limiter

router = APIRouter(prefix="/v1", tags=["config"])


def _page_url(request: Request) -> str:
    """URL of the page the storefront was loaded from (Origin, else our own base)."""
    return request.headers.get("origin") or str(request.base_url)


@router.get("/config", response_model=RuntimeConfigResponse)
async def runtime_config(
    request: Request,
    settings: BootstrapSettings = Depends(get_settings),
    resolver: EndpointResolver = Depends(get_resolver),
):
    # The caller is identified by the page Origin alone.
    origin = request.headers.get("origin")
    if not is_authorized_domain(settings, urlsplit(origin).hostname if origin else None):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="domain_not_authorized")

    # Synchronous path: cached winner or first URL, never waits on probes.
    return build_runtime_config(settings, resolver, page_url=_page_url(request))


@router.get("/config/endpoints", response_model=ResolverStatusResponse)
async def endpoint_status(
    settings: BootstrapSettings = Depends(get_settings),
    resolver: EndpointResolver = Depends(get_resolver),
):
    cache = resolver.cache
    return ResolverStatusResponse(
        catalog=[endpoint.url for endpoint in load_catalog(settings.static_api_urls)],
        state=resolver.state,
        winner=cache.winner.url if cache.winner else None,
        ttl_ms=cache.ttl_ms,
        results=[ProbeResultModel.from_result(r) for r in cache.results],
    )


@router.post("/config/refresh", response_model=WinnerResponse)
@limiter.limit("6/minute")
async def refresh_endpoint(
    request: Request,
    settings: BootstrapSettings = Depends(get_settings),
    resolver: EndpointResolver = Depends(get_resolver),
):
    """Run a probe round now and wait for its winner."""
    catalog = load_catalog(settings.static_api_urls)
    try:
        winner = await resolver.resolve_async(catalog)
    except EmptyCatalogError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="no_api_endpoint_configured",
        )

    return WinnerResponse(
        api_base_url=winner.url,
        results=[ProbeResultModel.from_result(r) for r in resolver.cache.results],
    )
