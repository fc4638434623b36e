"""Scheduler engine for schedsim."""

import logging
import random
import threading
import time
from collections import deque
from collections.abc import Callable

from schedsim.config import SchedulerConfig
from schedsim.models import ProcessClass, ProcessStatus, SchedulerSnapshot
from schedsim.process import Process
from schedsim.publisher import SnapshotCallback, SnapshotPublisher
from schedsim.queues import ProcessQueue


class Scheduler:
    """
    Single-core, priority-based scheduler with main memory and swap.

    The engine owns the ready queue, the swap queue, the running slot and
    the bounded archive of finished processes. Every mutation happens under
    one lock, so admissions, ticks and snapshots never interleave.

    The execution loop is exposed as ``step()``: each call performs one unit
    of work and returns how long to wait before the next call. ``start()``
    drives it from a daemon thread; tests can call it directly with a fake
    clock and a seeded random generator.
    """

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        *,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        """
        Initialize the Scheduler.

        Args:
            config: Capacities and policy parameters. Validated on creation.
            logger: Logger receiving scheduling events.
            clock: Time source in seconds. Default time.monotonic.
            rng: Random generator for quanta and I/O. Default a fresh Random.
        """
        self._config = config if config is not None else SchedulerConfig()
        self._log = logger or logging.getLogger(__name__)
        self._clock = clock
        self._rng = rng or random.Random()
        self._lock = threading.RLock()

        self._ready = ProcessQueue("ready")
        self._swap = ProcessQueue("swap")
        self._running: Process | None = None
        self._archive: deque[Process] = deque(maxlen=self._config.history_limit)
        self._next_id = 0

        self._paused = False
        self._paused_since: float | None = None
        self._speed = self._config.default_speed

        # Current slice
        self._quantum = 0
        self._ticks_run = 0
        self._io_ticks_left = 0

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._publisher = SnapshotPublisher(
            self.snapshot, period=self._config.snapshot_period, logger=self._log
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def config(self) -> SchedulerConfig:
        """Get the engine configuration."""
        return self._config

    @property
    def memory_used(self) -> int:
        """Main memory held by the ready queue and the running process."""
        with self._lock:
            running = self._running.mem_need if self._running is not None else 0
            return self._ready.used + running

    @property
    def swap_used(self) -> int:
        """Swap held by the swap queue."""
        with self._lock:
            return self._swap.used

    @property
    def is_paused(self) -> bool:
        """Check if the simulation is paused."""
        return self._paused

    @property
    def simulation_speed(self) -> float:
        """Get the current simulation speed multiplier."""
        return self._speed

    @property
    def tick_duration(self) -> float:
        """Wall-clock seconds per compute-unit tick at the current speed."""
        return self._config.base_tick_duration / self._speed

    @property
    def is_running(self) -> bool:
        """Check if the execution loop thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def set_paused(self, paused: bool) -> None:
        """
        Pause or resume the simulation without discarding any state.

        Time spent paused is not counted as I/O wait: on resume, an open
        I/O window is shifted forward by the length of the pause.
        """
        with self._lock:
            if self._paused == paused:
                return
            now = self._clock()
            if paused:
                self._paused_since = now
            elif self._paused_since is not None:
                if self._running is not None:
                    self._running.suspend_io(now - self._paused_since)
                self._paused_since = None
            self._paused = paused
            self._log.info("Simulation %s", "paused" if paused else "resumed")

    def set_simulation_speed(self, speed: float) -> None:
        """Set the speed multiplier, clamped to the configured bounds."""
        with self._lock:
            self._speed = self._config.clamp_speed(speed)
            self._log.info("Simulation speed set to %.2fx", self._speed)

    def snapshot(self) -> SchedulerSnapshot:
        """Materialize a fully consistent, read-only view of the engine."""
        with self._lock:
            return SchedulerSnapshot(
                ready_queue=self._ready.snapshot(),
                swap_queue=self._swap.snapshot(),
                running=self._running.snapshot() if self._running is not None else None,
                archived=tuple(process.snapshot() for process in self._archive),
                memory_used=self.memory_used,
                swap_used=self.swap_used,
                is_paused=self._paused,
                simulation_speed=self._speed,
            )

    def subscribe(self, callback: SnapshotCallback | None) -> None:
        """Register the single periodic snapshot subscriber."""
        self._publisher.subscribe(callback)

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def admit(
        self,
        name: str,
        cpu_time: int,
        mem_need: int,
        cpu_demand: int = 1,
        process_class: ProcessClass = ProcessClass.USER,
        priority: int = 0,
    ) -> bool:
        """
        Admit a new process into main memory, swap, or reject it.

        Main memory is tried first, then preemption of lower class-weighted
        residents, then swap. A rejected request leaves no trace and does
        not consume an id.

        Returns:
            False if neither memory nor swap can take the process.

        Raises:
            ValueError: If cpu_time or mem_need is not positive.
        """
        with self._lock:
            now = self._clock()
            process = Process(
                id=self._next_id,
                name=name,
                cpu_time=cpu_time,
                mem_need=mem_need,
                created_at=now,
                cpu_demand=cpu_demand,
                process_class=process_class,
                priority=priority,
            )
            if not self._place(process, now):
                self._log.warning(
                    "Rejected %s (%d MB): insufficient memory and swap", name, mem_need
                )
                return False
            self._next_id += 1
            return True

    def _place(self, process: Process, now: float) -> bool:
        if self.memory_used + process.mem_need <= self._config.max_memory:
            self._ready.insert(process)
            self._log.info(
                "Admitted P%d %s (%d MB) to main memory", process.id, process.name, process.mem_need
            )
            return True

        victims = self._ready.reclaimable_tail(process)
        if sum(victim.mem_need for victim in victims) >= process.mem_need:
            for victim in victims:
                self._ready.remove(victim)
                if self.admit_to_swap(victim):
                    self._log.info("Swapped out P%d %s for P%d", victim.id, victim.name, process.id)
                else:
                    victim.terminate(now)
                    self._archive_process(victim)
                    self._log.warning(
                        "Terminated P%d %s: evicted for P%d with no swap room",
                        victim.id,
                        victim.name,
                        process.id,
                    )
            self._ready.insert(process)
            self._log.info(
                "Admitted P%d %s (%d MB) to main memory after preempting %d process(es)",
                process.id,
                process.name,
                process.mem_need,
                len(victims),
            )
            return True

        if self.admit_to_swap(process):
            self._log.info(
                "Admitted P%d %s (%d MB) to swap", process.id, process.name, process.mem_need
            )
            return True
        return False

    def admit_to_swap(self, process: Process) -> bool:
        """
        Place a waiting process in swap.

        If swap is full, swap residents with a lower class-weighted priority
        are terminated from the tail until enough room is found; if there is
        not enough such room nothing changes.

        Returns:
            True if the process now sits in the swap queue.
        """
        with self._lock:
            if self._swap.used + process.mem_need <= self._config.max_swap:
                self._swap.insert(process)
                return True

            victims = self._swap.reclaimable_tail(process)
            if sum(victim.mem_need for victim in victims) < process.mem_need:
                return False

            now = self._clock()
            for victim in victims:
                self._swap.remove(victim)
                victim.terminate(now)
                self._archive_process(victim)
                self._log.warning(
                    "Terminated P%d %s: evicted from swap for P%d",
                    victim.id,
                    victim.name,
                    process.id,
                )
            self._swap.insert(process)
            return True

    def _archive_process(self, process: Process) -> None:
        # deque(maxlen=...) drops the oldest entry once the history is full
        self._archive.append(process)

    # ------------------------------------------------------------------
    # Execution loop
    # ------------------------------------------------------------------

    def step(self) -> float:
        """
        Perform one unit of scheduler work.

        Dispatches the next process, executes one tick of the running
        process, or idles. Never raises for resource conditions.

        Returns:
            Seconds to wait before the next step.
        """
        with self._lock:
            if self._paused:
                return self._config.pause_poll_interval
            if self._running is None:
                return self._dispatch()
            if self._running.status is ProcessStatus.IO:
                return self._io_tick()
            return self._tick()

    def _dispatch(self) -> float:
        process = self._ready.pop_head()
        if process is None:
            return self._config.idle_wait
        process.dispatch()
        self._running = process
        self._quantum = self._rng.randint(1, self._config.max_quantum)
        self._ticks_run = 0
        self._log.debug("Dispatched P%d %s for %d tick(s)", process.id, process.name, self._quantum)
        return self.tick_duration

    def _tick(self) -> float:
        process = self._running
        assert process is not None
        now = self._clock()
        process.advance()
        self._ticks_run += 1

        if process.is_finished:
            process.complete(now)
            self._running = None
            self._archive_process(process)
            self._log.info("P%d %s completed", process.id, process.name)
            self._swap_in(now)
            self._end_slice(now)
            return 0.0

        if self._ticks_run >= self._quantum:
            process.preempt()
            self._requeue(process)
            self._log.debug(
                "P%d %s preempted after %d tick(s)", process.id, process.name, self._ticks_run
            )
            self._end_slice(now)
            return 0.0

        if self._config.io_probability > 0 and self._rng.random() < self._config.io_probability:
            process.start_io(now)
            self._io_ticks_left = self._rng.randint(*self._config.io_ticks)
            self._log.debug("P%d %s waiting on I/O", process.id, process.name)

        return self.tick_duration

    def _io_tick(self) -> float:
        process = self._running
        assert process is not None
        self._io_ticks_left -= 1
        if self._io_ticks_left > 0:
            return self.tick_duration

        now = self._clock()
        process.finish_io(now)
        self._requeue(process)
        self._log.debug("P%d %s finished I/O", process.id, process.name)
        self._end_slice(now)
        return 0.0

    def _requeue(self, process: Process) -> None:
        process.requeue()
        self._running = None
        self._ready.insert(process)

    def _end_slice(self, now: float) -> None:
        self._ready.age(now, self._config.aging_interval, self._config.max_priority)

    def _swap_in(self, now: float) -> None:
        self._swap.age(now, self._config.aging_interval, self._config.max_priority)
        budget = self._config.max_memory - self.memory_used
        promoted = self._swap.fitting_head(budget)
        for process in promoted:
            self._swap.remove(process)
            self._ready.insert(process)
        if promoted:
            self._log.info(
                "Swapped in %d process(es): %s",
                len(promoted),
                ", ".join(f"P{process.id}" for process in promoted),
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the execution loop and the snapshot publisher."""
        if not self.is_running:
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run_loop,
                daemon=True,
                name="Scheduler",
            )
            self._thread.start()
        self._publisher.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the execution loop and the snapshot publisher.

        Args:
            timeout: How long to wait for each thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        self._publisher.stop(timeout=timeout)

    def _run_loop(self) -> None:
        """Main execution loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                delay = self.step()
            except Exception:
                # Keep the simulation alive; the failure is reported, not raised
                self._log.exception("Scheduler step failed")
                delay = self._config.idle_wait
            if delay > 0:
                self._stop_event.wait(timeout=delay)
