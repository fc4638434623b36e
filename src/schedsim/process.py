"""Simulated process record and its state machine."""

from dataclasses import dataclass, field

from schedsim.models import ProcessClass, ProcessSnapshot, ProcessStatus

# Legal transitions of the process state machine.
_TRANSITIONS: dict[ProcessStatus, frozenset[ProcessStatus]] = {
    ProcessStatus.WAITING: frozenset({ProcessStatus.RUNNING, ProcessStatus.TERMINATED}),
    ProcessStatus.RUNNING: frozenset(
        {ProcessStatus.COMPLETED, ProcessStatus.PREEMPTED, ProcessStatus.IO}
    ),
    ProcessStatus.IO: frozenset({ProcessStatus.PREEMPTED}),
    ProcessStatus.PREEMPTED: frozenset({ProcessStatus.WAITING}),
    ProcessStatus.COMPLETED: frozenset(),
    ProcessStatus.TERMINATED: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    """Raised when a process is moved along an edge the state machine lacks."""


def clamp_cpu_demand(cpu_demand: int) -> int:
    """Clamp a CPU demand percentage into [1, 100]."""
    return min(100, max(1, int(cpu_demand)))


@dataclass(slots=True, eq=False)
class Process:
    """
    Mutable resource-and-progress record owned by the scheduler engine.

    Only the engine mutates a process. Everything outside the engine sees
    ProcessSnapshot projections produced by snapshot().
    """

    id: int
    name: str
    cpu_time: int
    mem_need: int
    created_at: float
    cpu_demand: int = 1
    process_class: ProcessClass = ProcessClass.USER
    priority: int = 0
    done: int = 0
    status: ProcessStatus = ProcessStatus.WAITING
    updated_at: float = field(default=0.0)
    ended_at: float | None = None
    io_start_time: float | None = None
    io_time: float = 0.0

    def __post_init__(self) -> None:
        """Validate immutable sizes and normalize the demand."""
        if self.cpu_time <= 0:
            raise ValueError(f"cpu_time must be positive, got {self.cpu_time}")
        if self.mem_need <= 0:
            raise ValueError(f"mem_need must be positive, got {self.mem_need}")
        self.cpu_demand = clamp_cpu_demand(self.cpu_demand)
        self.process_class = ProcessClass(self.process_class)
        self.updated_at = self.created_at

    @property
    def weighted_priority(self) -> int:
        """Class-weighted priority used for eviction eligibility."""
        return self.priority * int(self.process_class)

    @property
    def is_finished(self) -> bool:
        """Whether all required compute units have been executed."""
        return self.done >= self.cpu_time

    def _move(self, new_status: ProcessStatus) -> None:
        if new_status not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Process {self.id} cannot go from {self.status.value} to {new_status.value}"
            )
        self.status = new_status

    def dispatch(self) -> None:
        """Give the process the CPU."""
        self._move(ProcessStatus.RUNNING)

    def advance(self) -> None:
        """Execute one compute unit."""
        if self.status is not ProcessStatus.RUNNING:
            raise InvalidTransitionError(f"Process {self.id} is not running")
        self.done = min(self.cpu_time, self.done + 1)

    def complete(self, now: float) -> None:
        """Mark the process finished."""
        self._move(ProcessStatus.COMPLETED)
        self.ended_at = now

    def preempt(self) -> None:
        """Take the CPU away at the end of a quantum or an I/O wait."""
        self._move(ProcessStatus.PREEMPTED)

    def requeue(self) -> None:
        """Return a preempted process to the waiting state."""
        self._move(ProcessStatus.WAITING)

    def start_io(self, now: float) -> None:
        """Block the running process on simulated I/O."""
        self._move(ProcessStatus.IO)
        self.io_start_time = now

    def finish_io(self, now: float) -> None:
        """Account the I/O wait and preempt the process."""
        if self.io_start_time is not None:
            self.io_time += now - self.io_start_time
            self.io_start_time = None
        self.preempt()

    def suspend_io(self, duration: float) -> None:
        """Exclude a paused interval from the open I/O window, if any."""
        if self.status is ProcessStatus.IO and self.io_start_time is not None:
            self.io_start_time += duration

    def terminate(self, now: float) -> None:
        """Forcefully evict a waiting process."""
        self._move(ProcessStatus.TERMINATED)
        self.ended_at = now

    def age(self, now: float, interval: float, max_priority: int | None = None) -> None:
        """
        Raise the priority proportionally to the time waited.

        Waiting is measured on the engine clock, so time spent paused
        counts too: the first pass after a long pause boosts every queued
        process by the whole pause.

        Args:
            now: Current clock reading.
            interval: Seconds of waiting worth one class-weighted increment.
            max_priority: Optional ceiling; never lowers an existing priority.
        """
        waited = now - self.updated_at
        self.updated_at = now
        boost = int(waited // interval) * int(self.process_class)
        if boost <= 0:
            return
        aged = self.priority + boost
        if max_priority is not None:
            aged = max(self.priority, min(aged, max_priority))
        self.priority = aged

    def snapshot(self) -> ProcessSnapshot:
        """Create a read-only projection of this process."""
        return ProcessSnapshot(
            id=self.id,
            name=self.name,
            process_class=self.process_class,
            priority=self.priority,
            cpu_demand=self.cpu_demand,
            cpu_time=self.cpu_time,
            done=self.done,
            mem_need=self.mem_need,
            status=self.status,
            created_at=self.created_at,
            ended_at=self.ended_at,
            io_time=self.io_time,
        )
