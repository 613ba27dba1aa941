from __future__ import annotations

import sys
from typing import Any
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from fake_page import FakeClock  # noqa: E402


def pytest_configure(config: Any) -> None:
    config.addinivalue_line(
        "markers",
        "site: live smoke tests that require a reachable site + real account credentials",
    )


@pytest.fixture
def fake_clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Monotonic clock used by every deadline; only advances when a fake page waits."""
    clock = FakeClock()
    monkeypatch.setattr("netlib_login_check.portal.timing.monotonic", clock)
    return clock
