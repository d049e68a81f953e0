from dataclasses import replace

import pytest
from starlette.testclient import TestClient

from ezboot.main import create_app
from ezboot.utils.endpoint_resolver import EndpointResolver
from tests.fakes import FakeProbe

SHOP_ORIGIN = "https://shop.test"


@pytest.fixture()
def probe() -> FakeProbe:
    return FakeProbe({"https://b.example": True})


@pytest.fixture()
def client(settings, probe):
    resolver = EndpointResolver(probe, timeout_ms=200, ttl_ms=60_000)
    with TestClient(create_app(settings, resolver)) as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# /
# ---------------------------------------------------------------------------

def test_health(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


# ---------------------------------------------------------------------------
# /v1/config
# ---------------------------------------------------------------------------

def test_config_returns_candidate_member(client):
    resp = client.get("/v1/config", headers={"Origin": SHOP_ORIGIN})

    assert resp.status_code == 200
    body = resp.json()
    assert body["api_base_url"] in {"https://a.example", "https://b.example", "https://c.example"}
    assert body["url_mode"] == "static"
    assert body["panel_type"] == "V2board"


def test_config_after_refresh_serves_winner_from_cache(client, probe):
    refresh = client.post("/v1/config/refresh")
    assert refresh.status_code == 200
    assert refresh.json()["api_base_url"] == "https://b.example"

    calls_before = len(probe.calls)
    for _ in range(3):
        resp = client.get("/v1/config")
        assert resp.json()["api_base_url"] == "https://b.example"
    assert len(probe.calls) == calls_before


def test_endpoint_status_reports_last_round(client):
    client.post("/v1/config/refresh")
    resp = client.get("/v1/config/endpoints")

    assert resp.status_code == 200
    body = resp.json()
    assert body["catalog"] == ["https://a.example", "https://b.example", "https://c.example"]
    assert body["winner"] == "https://b.example"
    assert body["state"] in {"populated", "probing"}
    assert any(r["url"] == "https://b.example" and r["reachable"] for r in body["results"])


def test_refresh_without_candidates_is_503(settings):
    empty = replace(settings, static_api_urls=())
    with TestClient(create_app(empty, EndpointResolver(FakeProbe()))) as test_client:
        resp = test_client.post("/v1/config/refresh")

    assert resp.status_code == 503
    assert resp.json()["detail"] == "no_api_endpoint_configured"


def test_config_without_candidates_uses_default(settings):
    empty = replace(settings, static_api_urls=(), default_api_url="https://fallback.example")
    with TestClient(create_app(empty, EndpointResolver(FakeProbe()))) as test_client:
        resp = test_client.get("/v1/config")

    assert resp.status_code == 200
    assert resp.json()["api_base_url"] == "https://fallback.example"


def test_refresh_is_rate_limited(client):
    statuses = [client.post("/v1/config/refresh").status_code for _ in range(7)]
    assert statuses[:6] == [200] * 6
    assert statuses[6] == 429


def test_auto_mode_derives_url_from_origin(settings):
    auto = replace(settings, url_mode="auto")
    with TestClient(create_app(auto, EndpointResolver(FakeProbe()))) as test_client:
        resp = test_client.get("/v1/config", headers={"Origin": "https://shop.example"})

    assert resp.json()["api_base_url"] == "https://shop.example/api/v1"


# ---------------------------------------------------------------------------
# Domain check
# ---------------------------------------------------------------------------

def test_domain_check_rejects_unlisted_origin(settings):
    guarded = replace(settings, enable_domain_check=True, authorized_domains=("shop.test",))
    with TestClient(create_app(guarded, EndpointResolver(FakeProbe()))) as test_client:
        denied = test_client.get("/v1/config", headers={"Origin": "https://evil.example.com"})
        allowed = test_client.get("/v1/config", headers={"Origin": SHOP_ORIGIN})

    assert denied.status_code == 403
    assert denied.json()["detail"] == "domain_not_authorized"
    assert allowed.status_code == 200


def test_domain_check_ignores_forwarded_host(settings):
    guarded = replace(settings, enable_domain_check=True, authorized_domains=("shop.test",))
    with TestClient(create_app(guarded, EndpointResolver(FakeProbe()))) as test_client:
        spoofed = test_client.get(
            "/v1/config",
            headers={"Origin": "https://evil.example.com", "X-Forwarded-Host": "shop.test"},
        )
        behind_proxy = test_client.get(
            "/v1/config",
            headers={"Origin": SHOP_ORIGIN, "X-Forwarded-Host": "boot.internal"},
        )

    assert spoofed.status_code == 403
    assert behind_proxy.status_code == 200


def test_domain_check_requires_origin(settings):
    guarded = replace(settings, enable_domain_check=True, authorized_domains=("testserver",))
    with TestClient(create_app(guarded, EndpointResolver(FakeProbe()))) as test_client:
        resp = test_client.get("/v1/config")

    assert resp.status_code == 403
    assert resp.json()["detail"] == "domain_not_authorized"


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

def _preflight(client: TestClient, origin: str):
    """Helper to craft a CORS pre-flight OPTIONS request."""
    headers = {
        "Origin": origin,
        "Access-Control-Request-Method": "GET",
    }
    return client.options("/v1/config", headers=headers)


def test_cors_rejects_unlisted_origin(client):
    resp = _preflight(client, "https://evil.example.com")
    assert "access-control-allow-origin" not in resp.headers


def test_cors_allows_storefront_origin(client):
    resp = _preflight(client, SHOP_ORIGIN)
    assert resp.headers.get("access-control-allow-origin") == SHOP_ORIGIN
    assert "GET" in resp.headers.get("access-control-allow-methods", "")
