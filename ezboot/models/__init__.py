from __future__ import annotations

"""Unified models namespace – resolver domain types and API response models.

Domain objects are plain frozen dataclasses so the resolver core stays free of
framework imports; the pydantic models at the bottom only describe what the
HTTP layer returns::

    from ezboot.models import CandidateEndpoint, RuntimeConfigResponse
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

__all__ = [
    "CacheState",
    "CandidateEndpoint",
    "EmptyCatalogError",
    "ProbeResult",
    "ProbeResultModel",
    "ResolutionCache",
    "ResolverStatusResponse",
    "RuntimeConfigResponse",
    "WinnerResponse",
]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class EmptyCatalogError(RuntimeError):
    """No candidate API endpoints are configured, so nothing can be resolved."""

    def __init__(self, message: str = "no candidate API endpoints configured"):
        super().__init__(message)


# ---------------------------------------------------------------------------
# Resolver domain types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CandidateEndpoint:
    """One configured backend API origin; equality is by normalized URL."""

    url: str
    order: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class ProbeResult:
    endpoint: CandidateEndpoint
    reachable: bool
    latency_ms: Optional[int]
    observed_at: datetime
    status_code: Optional[int] = None
    error: Optional[str] = None


class CacheState(str, Enum):
    empty = "empty"
    probing = "probing"
    populated = "populated"
    expired = "expired"


@dataclass(frozen=True)
class ResolutionCache:
    """Snapshot of the last published round.

    ``resolved_at`` is a reading of the resolver's clock (seconds). The
    resolver swaps the whole snapshot when a round completes; it is never
    mutated in place.
    """

    ttl_ms: int
    winner: Optional[CandidateEndpoint] = None
    resolved_at: Optional[float] = None
    round_seq: int = 0
    results: tuple[ProbeResult, ...] = ()

    def is_expired(self, now: float) -> bool:
        if self.winner is None or self.resolved_at is None:
            return True
        return (now - self.resolved_at) * 1000 > self.ttl_ms


# ---------------------------------------------------------------------------
# API response models
# ---------------------------------------------------------------------------

class RuntimeConfigResponse(BaseModel):
    api_base_url: str = Field(..., description="Backend API origin the storefront should call")
    url_mode: str
    panel_type: str
    is_xboard: bool = False
    is_xiao_v2board: bool = False
    custom_headers: Dict[str, str] = Field(default_factory=dict)
    domain_check_enabled: bool = False


class ProbeResultModel(BaseModel):
    url: str
    reachable: bool
    latency_ms: Optional[int] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    observed_at: datetime

    @classmethod
    def from_result(cls, result: ProbeResult) -> "ProbeResultModel":
        return cls(
            url=result.endpoint.url,
            reachable=result.reachable,
            latency_ms=result.latency_ms,
            status_code=result.status_code,
            error=result.error,
            observed_at=result.observed_at,
        )


class ResolverStatusResponse(BaseModel):
    catalog: List[str]
    state: CacheState
    winner: Optional[str] = None
    ttl_ms: int
    results: List[ProbeResultModel] = Field(default_factory=list)


class WinnerResponse(BaseModel):
    api_base_url: str
    results: List[ProbeResultModel] = Field(default_factory=list)
