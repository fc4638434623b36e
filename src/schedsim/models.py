"""Data models for schedsim."""

from dataclasses import dataclass
from enum import Enum, IntEnum


class ProcessClass(IntEnum):
    """Process class; the value is the weight used for eviction and aging."""

    BACKGROUND = 1
    USER = 2
    SYSTEM = 3


class ProcessStatus(Enum):
    """Lifecycle states of a simulated process."""

    WAITING = "Waiting"
    RUNNING = "Running"
    IO = "IO"
    PREEMPTED = "Preempted"
    COMPLETED = "Completed"
    TERMINATED = "Terminated"

    @property
    def is_terminal(self) -> bool:
        """Whether the process has left the scheduler for good."""
        return self in (ProcessStatus.COMPLETED, ProcessStatus.TERMINATED)


@dataclass(slots=True, frozen=True)
class ProcessSnapshot:
    """Immutable snapshot of a process state."""

    id: int
    name: str
    process_class: ProcessClass
    priority: int
    cpu_demand: int  # 1 - 100
    cpu_time: int
    done: int
    mem_need: int  # MB
    status: ProcessStatus
    created_at: float
    ended_at: float | None = None
    io_time: float = 0.0


@dataclass(slots=True, frozen=True)
class SchedulerSnapshot:
    """Immutable, fully consistent view of the scheduler engine."""

    ready_queue: tuple[ProcessSnapshot, ...]
    swap_queue: tuple[ProcessSnapshot, ...]
    running: ProcessSnapshot | None
    archived: tuple[ProcessSnapshot, ...]  # Oldest first
    memory_used: int
    swap_used: int
    is_paused: bool
    simulation_speed: float
