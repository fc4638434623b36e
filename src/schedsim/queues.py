"""Priority-ordered process queues with memory accounting."""

from bisect import bisect_right
from collections.abc import Iterator

from schedsim.models import ProcessSnapshot
from schedsim.process import Process


def _descending(process: Process) -> int:
    return -process.priority


class ProcessQueue:
    """
    Sequence of processes kept in non-increasing priority order.

    Equal priorities keep their insertion order, so a newcomer lines up
    behind processes of the same priority. Memory usage is always derived
    from the current contents rather than tracked separately.
    """

    def __init__(self, name: str) -> None:
        """
        Initialize an empty queue.

        Args:
            name: Label used in log messages ("ready", "swap").
        """
        self.name = name
        self._items: list[Process] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Process]:
        return iter(self._items)

    def __contains__(self, process: object) -> bool:
        return any(item is process for item in self._items)

    @property
    def used(self) -> int:
        """Total memory (MB) held by the queued processes."""
        return sum(process.mem_need for process in self._items)

    def insert(self, process: Process) -> None:
        """Insert a process at its priority-sorted position."""
        index = bisect_right(self._items, -process.priority, key=_descending)
        self._items.insert(index, process)

    def pop_head(self) -> Process | None:
        """Remove and return the highest-priority process, or None."""
        if not self._items:
            return None
        return self._items.pop(0)

    def remove(self, process: Process) -> None:
        """Remove a specific process (identity match)."""
        for index, item in enumerate(self._items):
            if item is process:
                del self._items[index]
                return
        raise ValueError(f"Process {process.id} is not in the {self.name} queue")

    def reclaimable_tail(self, incoming: Process) -> list[Process]:
        """
        Collect eviction candidates for an incoming process.

        Scans from the lowest-priority end while each candidate's
        class-weighted priority is strictly below the incoming one, and
        stops as soon as the accumulated memory covers the request. The
        queue is sorted by raw priority, so the scan is a greedy prefix of
        the tail, not a global search.

        Returns:
            The scanned candidates, lowest priority first. Callers must
            check their total memory before evicting them.
        """
        candidates: list[Process] = []
        reclaimed = 0
        threshold = incoming.weighted_priority
        for process in reversed(self._items):
            if process.weighted_priority >= threshold:
                break
            candidates.append(process)
            reclaimed += process.mem_need
            if reclaimed >= incoming.mem_need:
                break
        return candidates

    def fitting_head(self, budget: int) -> list[Process]:
        """Return the longest head prefix whose total memory fits in budget."""
        prefix: list[Process] = []
        total = 0
        for process in self._items:
            if total + process.mem_need > budget:
                break
            prefix.append(process)
            total += process.mem_need
        return prefix

    def age(self, now: float, interval: float, max_priority: int | None = None) -> None:
        """Age every queued process, then restore priority order."""
        for process in self._items:
            process.age(now, interval, max_priority)
        # list.sort is stable, so equal priorities keep their queue order
        self._items.sort(key=_descending)

    def snapshot(self) -> tuple[ProcessSnapshot, ...]:
        """Project the queue contents, head first."""
        return tuple(process.snapshot() for process in self._items)
