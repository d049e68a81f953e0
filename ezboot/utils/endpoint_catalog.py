"""Candidate API endpoint catalog."""

from __future__ import annotations

from typing import Iterable

from ezboot.models import CandidateEndpoint, EmptyCatalogError

__all__ = ["load_catalog", "normalize_url", "require_catalog"]


def normalize_url(raw: str) -> str:
    """Trim whitespace and strip trailing slashes.

    Examples:
        >>> normalize_url("  https://a.example/api/v1/ ")
        'https://a.example/api/v1'
    """
    return raw.strip().rstrip("/")


def load_catalog(raw: str | Iterable[str] | None) -> tuple[CandidateEndpoint, ...]:
    """Build the ordered, deduplicated catalog from configured origins.

    *raw* is either an iterable of strings or a single comma-separated string
    as found in the environment. Empty input yields an empty catalog; callers
    treat that as "no override available".
    """
    if raw is None:
        return ()
    items = raw.split(",") if isinstance(raw, str) else raw

    seen: set[str] = set()
    catalog: list[CandidateEndpoint] = []
    for item in items:
        if item is None:
            continue
        url = normalize_url(str(item))
        if not url or url in seen:
            continue
        seen.add(url)
        catalog.append(CandidateEndpoint(url=url, order=len(catalog)))
    return tuple(catalog)


def require_catalog(catalog: tuple[CandidateEndpoint, ...]) -> tuple[CandidateEndpoint, ...]:
    if not catalog:
        raise EmptyCatalogError()
    return catalog
