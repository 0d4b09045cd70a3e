"""Shared fixtures: a controllable clock and a sample source file."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def app_js() -> str:
    """A 15-line JavaScript file; line N reads ``const lineN = N;``."""
    return "\n".join(f"const line{n} = {n};" for n in range(1, 16))
