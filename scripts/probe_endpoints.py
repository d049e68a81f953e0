#!/usr/bin/env python3
"""Probe every candidate API origin once and report the winner.

Useful when a storefront suddenly points at the "wrong" backend: it runs the
exact round the bootstrap service runs and prints every probe result.

Usage::

    # candidates from STATIC_API_URLS (env or .env)
    python scripts/probe_endpoints.py

    # explicit candidates and a tighter timeout
    python scripts/probe_endpoints.py https://a.example/api/v1 https://b.example/api/v1 --timeout-ms 1500

Exit status is 0 when some candidate answered, 1 when the winner is only the
first-entry fallback, and 2 when no candidates are configured.
"""

from __future__ import annotations

import argparse
import asyncio
import pathlib
import sys

# Ensure project root is on PYTHONPATH so `import ezboot.*` works when the
# script is executed directly (e.g. `python scripts/probe_endpoints.py`).
PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from ezboot.models import EmptyCatalogError  # noqa: E402
from ezboot.settings import BootstrapSettings  # noqa: E402
from ezboot.utils.endpoint_catalog import load_catalog  # noqa: E402
from ezboot.utils.endpoint_probe import EndpointProber  # noqa: E402
from ezboot.utils.endpoint_resolver import EndpointResolver  # noqa: E402
from ezboot.utils.logger import configure_logging  # noqa: E402


async def _probe_all(urls: list[str], settings: BootstrapSettings, timeout_ms: int) -> int:
    catalog = load_catalog(urls or settings.static_api_urls)
    resolver = EndpointResolver(
        EndpointProber(settings.probe_path),
        timeout_ms=timeout_ms,
        ttl_ms=settings.cache_ttl_ms,
    )

    try:
        winner = await resolver.resolve_async(catalog)
    except EmptyCatalogError:
        print("No candidate API URLs configured (set STATIC_API_URLS or pass URLs)")
        return 2

    for result in resolver.cache.results:
        latency = f"{result.latency_ms} ms" if result.latency_ms is not None else "-"
        state = "up" if result.reachable else f"down ({result.error})"
        print(f"{result.endpoint.url:<50} {state:<24} {latency}")

    reachable = any(r.reachable for r in resolver.cache.results)
    print(f"Winner: {winner.url}{'' if reachable else ' (fallback, nothing reachable)'}")
    return 0 if reachable else 1


def main() -> None:  # noqa: D401
    parser = argparse.ArgumentParser(description="Probe candidate API origins and pick a winner")
    parser.add_argument("urls", nargs="*", help="Candidate origins (defaults to STATIC_API_URLS)")
    parser.add_argument("--timeout-ms", type=int, default=None, help="Per-probe timeout in milliseconds")
    parser.add_argument("--verbose", action="store_true", help="Log every probe as JSON")
    args = parser.parse_args()

    if args.verbose:
        configure_logging("DEBUG")

    settings = BootstrapSettings.from_env()
    timeout_ms = args.timeout_ms or settings.probe_timeout_ms
    sys.exit(asyncio.run(_probe_all(args.urls, settings, timeout_ms)))


if __name__ == "__main__":
    main()
