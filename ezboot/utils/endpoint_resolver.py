from __future__ import annotations

"""Pick the backend API origin the storefront should talk to.

A *round* probes every catalog entry concurrently and takes the first one that
answers. The winner is cached for ``ttl_ms`` so the synchronous start-up path
(:meth:`EndpointResolver.get_current`) can answer immediately:

* cached winner present and fresh → return it, no network activity;
* otherwise → return ``catalog[0]`` now and start a detached round so later
  calls see a fresh answer.

Callers that can wait use :meth:`EndpointResolver.resolve_async`.

Cache state moves ``empty → probing → populated → expired → probing``. Rounds
are numbered; a round that finishes after a newer round has already published
is discarded so a straggler never overwrites a fresher answer.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Optional

from ezboot.models import CacheState, CandidateEndpoint, ProbeResult, ResolutionCache
from ezboot.settings import (
    DEFAULT_CACHE_TTL_MS,
    DEFAULT_PROBE_TIMEOUT_MS,
    DEFAULT_ROUND_MARGIN_MS,
    BootstrapSettings,
)
from ezboot.utils.endpoint_catalog import require_catalog
from ezboot.utils.endpoint_probe import EndpointProber, ProbeFunc

__all__ = ["EndpointResolver", "RoundOutcome", "race_probes"]

logger = logging.getLogger("ezboot.resolver")


@dataclass(frozen=True)
class RoundOutcome:
    """Winner of one round plus every probe result that arrived in time."""

    winner: CandidateEndpoint
    results: tuple[ProbeResult, ...]
    fallback: bool


def _failed_result(endpoint: CandidateEndpoint, exc: BaseException) -> ProbeResult:
    return ProbeResult(endpoint, False, None, datetime.now(timezone.utc), error=type(exc).__name__)


async def race_probes(
    catalog: tuple[CandidateEndpoint, ...],
    probe: ProbeFunc,
    *,
    timeout_ms: int,
    budget_ms: int,
) -> RoundOutcome:
    """Run one probe task per endpoint and return the first reachable one.

    Probes that finish in the same loop iteration are ranked by catalog order.
    When nothing is reachable before the budget runs out the first catalog
    entry is returned with ``fallback=True``. Probes still running when the
    round is decided are cancelled and their results dropped.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + budget_ms / 1000

    tasks = {
        asyncio.ensure_future(probe(endpoint, timeout_ms)): endpoint
        for endpoint in catalog
    }
    pending = set(tasks)
    results: list[ProbeResult] = []
    winner: Optional[CandidateEndpoint] = None

    try:
        while pending and winner is None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            done, pending = await asyncio.wait(
                pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
            for task in sorted(done, key=lambda t: tasks[t].order):
                endpoint = tasks[task]
                exc = task.exception()
                result = _failed_result(endpoint, exc) if exc is not None else task.result()
                results.append(result)
                if winner is None and result.reachable:
                    winner = endpoint
    finally:
        for task in pending:
            task.cancel()

    if winner is None:
        return RoundOutcome(catalog[0], tuple(results), fallback=True)
    return RoundOutcome(winner, tuple(results), fallback=False)


class EndpointResolver:
    """Owns one resolution cache and the rounds that feed it.

    ``probe`` is any coroutine function ``(endpoint, timeout_ms) -> ProbeResult``
    and ``clock`` returns seconds; both are injectable so tests can run with
    fake probes and a synthetic clock.
    """

    def __init__(
        self,
        probe: Optional[ProbeFunc] = None,
        *,
        timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
        round_budget_ms: Optional[int] = None,
        ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._probe: ProbeFunc = probe or EndpointProber()
        self.timeout_ms = timeout_ms
        self.round_budget_ms = round_budget_ms
        self._clock = clock
        self._cache = ResolutionCache(ttl_ms=ttl_ms)
        self._round_seq = 0
        self._rounds_in_flight = 0
        self._refresh_tasks: Dict[tuple[CandidateEndpoint, ...], asyncio.Task] = {}

    @classmethod
    def from_settings(
        cls,
        settings: BootstrapSettings,
        probe: Optional[ProbeFunc] = None,
    ) -> "EndpointResolver":
        return cls(
            probe or EndpointProber(settings.probe_path),
            timeout_ms=settings.probe_timeout_ms,
            round_budget_ms=settings.round_budget_ms,
            ttl_ms=settings.cache_ttl_ms,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def cache(self) -> ResolutionCache:
        return self._cache

    @property
    def rounds_started(self) -> int:
        return self._round_seq

    @property
    def state(self) -> CacheState:
        if self._rounds_in_flight:
            return CacheState.probing
        if self._cache.winner is None:
            return CacheState.empty
        if self._cache.is_expired(self._clock()):
            return CacheState.expired
        return CacheState.populated

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _budget_for(self, timeout_ms: int) -> int:
        if self.round_budget_ms is not None:
            return self.round_budget_ms
        return timeout_ms + DEFAULT_ROUND_MARGIN_MS

    async def resolve_async(
        self,
        catalog: Iterable[CandidateEndpoint],
        timeout_ms: Optional[int] = None,
    ) -> CandidateEndpoint:
        """Probe the catalog now and publish the winner.

        Raises :class:`~ezboot.models.EmptyCatalogError` for an empty catalog;
        every probe-level failure is absorbed.
        """
        catalog = require_catalog(tuple(catalog))
        timeout_ms = timeout_ms or self.timeout_ms

        self._round_seq += 1
        seq = self._round_seq
        self._rounds_in_flight += 1
        try:
            outcome = await race_probes(
                catalog,
                self._probe,
                timeout_ms=timeout_ms,
                budget_ms=self._budget_for(timeout_ms),
            )
        finally:
            self._rounds_in_flight -= 1

        if outcome.fallback:
            logger.warning(
                "resolver.no_endpoint_reachable",
                extra={"round": seq, "fallback": outcome.winner.url, "probed": len(outcome.results)},
            )
        else:
            logger.info("resolver.round_complete", extra={"round": seq, "winner": outcome.winner.url})

        self._publish(seq, outcome)
        return outcome.winner

    async def resolve_url(self, catalog: Iterable[CandidateEndpoint], timeout_ms: Optional[int] = None) -> str:
        return (await self.resolve_async(catalog, timeout_ms)).url

    def _publish(self, seq: int, outcome: RoundOutcome) -> None:
        if seq < self._cache.round_seq:
            logger.debug("resolver.stale_round_discarded", extra={"round": seq, "published": self._cache.round_seq})
            return
        self._cache = ResolutionCache(
            ttl_ms=self._cache.ttl_ms,
            winner=outcome.winner,
            resolved_at=self._clock(),
            round_seq=seq,
            results=outcome.results,
        )

    def get_current(self, catalog: Iterable[CandidateEndpoint]) -> CandidateEndpoint:
        """Return the best known endpoint without waiting on the network."""
        catalog = require_catalog(tuple(catalog))
        cache = self._cache
        if cache.winner is not None and cache.winner in catalog and not cache.is_expired(self._clock()):
            return catalog[catalog.index(cache.winner)]

        self.refresh_in_background(catalog)
        return catalog[0]

    def get_current_url(self, catalog: Iterable[CandidateEndpoint]) -> str:
        return self.get_current(catalog).url

    # ------------------------------------------------------------------
    # Background refresh
    # ------------------------------------------------------------------

    def refresh_in_background(self, catalog: Iterable[CandidateEndpoint]) -> Optional[asyncio.Task]:
        """Start a detached round unless one is already running for this catalog.

        In-flight rounds are keyed by catalog, so a caller with a different
        catalog gets its own round instead of joining one that ignores its
        entries. Nothing awaits the returned task; it is handed back only so
        tests and shutdown code can observe it. Without a running event loop
        the refresh is skipped.
        """
        catalog = tuple(catalog)
        task = self._refresh_tasks.get(catalog)
        if task is not None and not task.done():
            return task
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("resolver.refresh_skipped", extra={"reason": "no running event loop"})
            return None

        task = loop.create_task(self._background_round(catalog))
        self._refresh_tasks[catalog] = task
        task.add_done_callback(lambda done: self._forget_refresh(catalog, done))
        return task

    def _forget_refresh(self, catalog: tuple[CandidateEndpoint, ...], task: asyncio.Task) -> None:
        if self._refresh_tasks.get(catalog) is task:
            del self._refresh_tasks[catalog]

    async def _background_round(self, catalog: tuple[CandidateEndpoint, ...]) -> None:
        try:
            await self.resolve_async(catalog)
        except Exception:
            logger.exception("resolver.background_round_failed")

    async def aclose(self) -> None:
        tasks = [task for task in self._refresh_tasks.values() if not task.done()]
        self._refresh_tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
