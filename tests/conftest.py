from __future__ import annotations

"""Pytest fixtures for the bootstrap service.

No test touches the network: the resolver runs on scripted probes
(`tests.fakes.FakeProbe`) and the probe executor on `httpx.MockTransport`.
"""

import os
import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Runtime env for the application
# ---------------------------------------------------------------------------

os.environ.setdefault("FRONTEND_ORIGIN", "https://shop.test")
os.environ.setdefault("APP_ENV", "test")

# Ensure project root on PYTHONPATH so `import ezboot` works when pytest is run
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ezboot.settings import BootstrapSettings  # noqa: E402
from ezboot.utils.endpoint_catalog import load_catalog  # noqa: E402
from ezboot.utils.limiter import limiter  # noqa: E402
from tests.fakes import FakeClock  # noqa: E402

CANDIDATES = ["https://a.example", "https://b.example", "https://c.example"]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture()
def catalog():
    return load_catalog(CANDIDATES)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings() -> BootstrapSettings:
    return BootstrapSettings.from_env(
        {
            "APP_ENV": "test",
            "STATIC_API_URLS": ",".join(CANDIDATES),
            "API_PROBE_TIMEOUT_MS": "2000",
            "API_CACHE_TTL_MS": "60000",
            "FRONTEND_ORIGIN": "https://shop.test",
        }
    )
