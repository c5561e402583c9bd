"""Shared fixtures: a deterministic clock and a fresh zero-latency workspace."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from mini_crm.config import ServiceConfig
from mini_crm.workspace import CrmServices


class TickingClock:
    """Clock that advances a fixed step on every call."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        self.current = self.current + self.step
        return self.current


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock(datetime(2024, 4, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def services(clock: TickingClock) -> CrmServices:
    """Provide a seeded workspace per test."""
    return CrmServices.from_seed(ServiceConfig.instant(), clock=clock)


@pytest.fixture
def empty_services(clock: TickingClock) -> CrmServices:
    return CrmServices.empty(ServiceConfig.instant(), clock=clock)
