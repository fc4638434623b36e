"""Tests for schedsim data models."""

from dataclasses import FrozenInstanceError

import pytest

from schedsim.models import ProcessClass, ProcessSnapshot, ProcessStatus, SchedulerSnapshot


def make_snapshot(**overrides) -> ProcessSnapshot:
    """Build a ProcessSnapshot with sensible defaults."""
    fields = dict(
        id=1,
        name="init",
        process_class=ProcessClass.SYSTEM,
        priority=90,
        cpu_demand=20,
        cpu_time=5,
        done=2,
        mem_need=256,
        status=ProcessStatus.RUNNING,
        created_at=10.0,
    )
    fields.update(overrides)
    return ProcessSnapshot(**fields)


def test_process_snapshot_creation():
    """Test ProcessSnapshot dataclass creation."""
    snapshot = make_snapshot()

    assert snapshot.id == 1
    assert snapshot.name == "init"
    assert snapshot.process_class is ProcessClass.SYSTEM
    assert snapshot.priority == 90
    assert snapshot.cpu_demand == 20
    assert snapshot.cpu_time == 5
    assert snapshot.done == 2
    assert snapshot.mem_need == 256
    assert snapshot.status is ProcessStatus.RUNNING
    assert snapshot.created_at == 10.0
    assert snapshot.ended_at is None
    assert snapshot.io_time == 0.0


def test_process_snapshot_is_frozen():
    """Test that ProcessSnapshot is immutable (frozen)."""
    snapshot = make_snapshot()

    with pytest.raises(FrozenInstanceError):
        snapshot.done = 5


def test_process_snapshot_uses_slots():
    """Test that ProcessSnapshot uses __slots__ for memory efficiency."""
    assert not hasattr(make_snapshot(), "__dict__")


def test_scheduler_snapshot_is_frozen():
    """Test that SchedulerSnapshot cannot be modified."""
    snapshot = SchedulerSnapshot(
        ready_queue=(make_snapshot(status=ProcessStatus.WAITING),),
        swap_queue=(),
        running=None,
        archived=(),
        memory_used=256,
        swap_used=0,
        is_paused=False,
        simulation_speed=1.0,
    )

    with pytest.raises(FrozenInstanceError):
        snapshot.memory_used = 0
    assert isinstance(snapshot.ready_queue, tuple)
    assert not hasattr(snapshot, "__dict__")


class TestProcessClass:
    """Tests for the ProcessClass weights."""

    def test_weights(self):
        """Test class values are the eviction and aging weights."""
        assert ProcessClass.BACKGROUND == 1
        assert ProcessClass.USER == 2
        assert ProcessClass.SYSTEM == 3

    def test_weights_are_ordered(self):
        """Test classes compare by importance."""
        assert ProcessClass.BACKGROUND < ProcessClass.USER < ProcessClass.SYSTEM


class TestProcessStatus:
    """Tests for ProcessStatus."""

    def test_display_values(self):
        """Test statuses render with their display names."""
        assert ProcessStatus.WAITING.value == "Waiting"
        assert ProcessStatus.IO.value == "IO"
        assert ProcessStatus.TERMINATED.value == "Terminated"

    def test_terminal_states(self):
        """Test only Completed and Terminated are terminal."""
        terminal = {status for status in ProcessStatus if status.is_terminal}
        assert terminal == {ProcessStatus.COMPLETED, ProcessStatus.TERMINATED}
