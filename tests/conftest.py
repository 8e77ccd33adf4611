"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone

import pytest
from idleweaver.application import IdleTrigger, RetryPolicy, TaskExecutor
from idleweaver.domain.ports import Clock, IdleSource
from idleweaver.infrastructure.config import IdleConfig
from idleweaver.services import ActionRegistry, PriorityScheduler, TaskStore


class FakeClock(Clock):
    """Manually advanced clock."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FixedIdleSource(IdleSource):
    """Idle source reporting a settable value."""

    name = "fixed"

    def __init__(self, seconds: float = 0.0):
        self.seconds = seconds
        self.calls = 0

    def get_idle_seconds(self) -> float:
        self.calls += 1
        return self.seconds


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake clock."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> TaskStore:
    """Provide an empty task store."""
    return TaskStore(clock=clock)


@pytest.fixture
def scheduler(clock: FakeClock) -> PriorityScheduler:
    """Provide a scheduler on the fake clock."""
    return PriorityScheduler(clock=clock)


@pytest.fixture
def actions() -> ActionRegistry:
    """Provide an empty action registry."""
    return ActionRegistry()


@pytest.fixture
def executor(
    store: TaskStore,
    scheduler: PriorityScheduler,
    actions: ActionRegistry,
    clock: FakeClock,
) -> TaskExecutor:
    """Provide an executor with a short timeout and two retries."""
    return TaskExecutor(
        store,
        scheduler,
        actions,
        max_concurrent=4,
        timeout_seconds=1.0,
        retry_policy=RetryPolicy(max_retries=2),
        clock=clock,
    )


@pytest.fixture
def idle_trigger(clock: FakeClock) -> IdleTrigger:
    """Provide an idle trigger with 600s threshold and 1800s cooldown."""
    config = IdleConfig(
        idle_threshold_seconds=600,
        user_silent_threshold_seconds=600,
        cooldown_seconds=1800,
    )
    return IdleTrigger(config, clock=clock)


@pytest.fixture
def idle_source() -> FixedIdleSource:
    """Provide an idle source that reports one hour of idleness."""
    return FixedIdleSource(3600.0)
