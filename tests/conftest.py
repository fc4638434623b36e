"""Shared fixtures for schedsim tests."""

import random
from collections.abc import Callable

import pytest

from schedsim.config import SchedulerConfig
from schedsim.engine import Scheduler
from schedsim.models import ProcessStatus, SchedulerSnapshot


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FixedRandom(random.Random):
    """Random generator whose integer draws and rolls are fixed."""

    def __init__(self, value: int = 5, roll: float = 1.0) -> None:
        super().__init__(0)
        self.value = value
        self.roll = roll

    def randint(self, a: int, b: int) -> int:
        return min(max(self.value, a), b)

    def random(self) -> float:
        return self.roll


def check_invariants(snapshot: SchedulerSnapshot, config: SchedulerConfig) -> None:
    """Assert every structural invariant of a scheduler snapshot."""
    resident = sum(p.mem_need for p in snapshot.ready_queue)
    if snapshot.running is not None:
        resident += snapshot.running.mem_need
    assert snapshot.memory_used == resident
    assert snapshot.swap_used == sum(p.mem_need for p in snapshot.swap_queue)
    assert snapshot.memory_used <= config.max_memory
    assert snapshot.swap_used <= config.max_swap

    for queue in (snapshot.ready_queue, snapshot.swap_queue):
        priorities = [p.priority for p in queue]
        assert priorities == sorted(priorities, reverse=True)
        assert all(p.status is ProcessStatus.WAITING for p in queue)

    tracked = [*snapshot.ready_queue, *snapshot.swap_queue, *snapshot.archived]
    if snapshot.running is not None:
        tracked.append(snapshot.running)
        assert snapshot.running.status in (ProcessStatus.RUNNING, ProcessStatus.IO)
    assert sum(p.status is ProcessStatus.RUNNING for p in tracked) <= 1

    # A process lives in exactly one place
    ids = [p.id for p in tracked]
    assert len(ids) == len(set(ids))

    for process in tracked:
        assert 0 <= process.done <= process.cpu_time
    for process in snapshot.archived:
        assert process.status.is_terminal
        assert process.ended_at is not None
    assert len(snapshot.archived) <= config.history_limit


@pytest.fixture
def clock() -> FakeClock:
    """A fake clock starting at zero."""
    return FakeClock()


@pytest.fixture
def config() -> SchedulerConfig:
    """Small capacities with the I/O stand-in disabled."""
    return SchedulerConfig(max_memory=1000, max_swap=500, io_probability=0.0)


@pytest.fixture
def make_scheduler(clock: FakeClock, config: SchedulerConfig) -> Callable[..., Scheduler]:
    """Factory for deterministic schedulers driven by the fake clock."""

    def factory(
        config: SchedulerConfig = config,
        rng: random.Random | None = None,
    ) -> Scheduler:
        return Scheduler(config, clock=clock, rng=rng or FixedRandom())

    return factory


@pytest.fixture
def scheduler(make_scheduler: Callable[..., Scheduler]) -> Scheduler:
    """A deterministic scheduler with max_memory=1000 and max_swap=500."""
    return make_scheduler()


@pytest.fixture
def fixed_random() -> type[FixedRandom]:
    """The FixedRandom class, for tests choosing their own quantum."""
    return FixedRandom


@pytest.fixture
def invariants() -> Callable[[SchedulerSnapshot, SchedulerConfig], None]:
    """The structural invariant checker."""
    return check_invariants
