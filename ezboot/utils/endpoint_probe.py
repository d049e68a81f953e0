"""Reachability probe for a single candidate endpoint.

A probe is one credential-free ``GET`` against a lightweight health path.
Anything that answers with a status below 500 inside the timeout counts as
reachable; 5xx, transport failures and timeouts do not. Probes never raise:
every failure is folded into a :class:`ProbeResult`.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from time import perf_counter
from typing import Awaitable, Callable, Optional

import httpx

from ezboot.models import CandidateEndpoint, ProbeResult
from ezboot.settings import DEFAULT_PROBE_PATH

__all__ = ["EndpointProber", "ProbeFunc"]

logger = logging.getLogger("ezboot.probe")

ProbeFunc = Callable[[CandidateEndpoint, int], Awaitable[ProbeResult]]

USER_AGENT = "ezboot-probe/0.1"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _elapsed_ms(start: float) -> int:
    return int((perf_counter() - start) * 1000)


class EndpointProber:
    """Issue reachability probes with httpx.

    ``transport`` is handed to :class:`httpx.AsyncClient`; tests pass an
    :class:`httpx.MockTransport` so no socket is ever opened.
    """

    def __init__(
        self,
        probe_path: str = DEFAULT_PROBE_PATH,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.probe_path = probe_path if probe_path.startswith("/") else f"/{probe_path}"
        self._transport = transport

    def probe_url(self, endpoint: CandidateEndpoint) -> str:
        return f"{endpoint.url}{self.probe_path}"

    async def __call__(self, endpoint: CandidateEndpoint, timeout_ms: int) -> ProbeResult:
        return await self.probe(endpoint, timeout_ms)

    async def probe(self, endpoint: CandidateEndpoint, timeout_ms: int) -> ProbeResult:
        timeout_s = max(timeout_ms, 1) / 1000
        start = perf_counter()
        try:
            # httpx timeouts are per phase; wait_for bounds the whole request.
            response = await asyncio.wait_for(self._fetch(endpoint, timeout_s), timeout=timeout_s)
        except asyncio.TimeoutError:
            logger.debug("probe.timeout", extra={"url": endpoint.url, "timeout_ms": timeout_ms})
            return ProbeResult(endpoint, False, None, _utc_now(), error="timeout")
        except httpx.TimeoutException as exc:
            logger.debug("probe.timeout", extra={"url": endpoint.url, "error": repr(exc)})
            return ProbeResult(endpoint, False, None, _utc_now(), error="timeout")
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
            latency = _elapsed_ms(start)
            logger.debug("probe.transport_error", extra={"url": endpoint.url, "error": repr(exc)})
            return ProbeResult(endpoint, False, latency, _utc_now(), error=type(exc).__name__)

        latency = _elapsed_ms(start)
        reachable = response.status_code < 500
        logger.debug(
            "probe.complete",
            extra={
                "url": endpoint.url,
                "status_code": response.status_code,
                "latency_ms": latency,
                "reachable": reachable,
            },
        )
        return ProbeResult(
            endpoint,
            reachable,
            latency,
            _utc_now(),
            status_code=response.status_code,
            error=None if reachable else f"HTTP {response.status_code}",
        )

    async def _fetch(self, endpoint: CandidateEndpoint, timeout_s: float) -> httpx.Response:
        # One short-lived client per probe; leaving the block closes the
        # connection even when wait_for cancels us mid-request.
        async with httpx.AsyncClient(
            timeout=timeout_s,
            follow_redirects=False,
            transport=self._transport,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        ) as client:
            return await client.get(self.probe_url(endpoint))
