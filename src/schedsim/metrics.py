"""Rolling scheduling statistics computed from archived processes."""

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from schedsim.config import AVG_LOOKBACK_WINDOW, METRIC_UPDATE_INTERVAL
from schedsim.models import ProcessStatus, SchedulerSnapshot


@dataclass(slots=True, frozen=True)
class MetricsReport:
    """Aggregated statistics. Times are in seconds."""

    avg_turnaround: float
    avg_waiting: float
    throughput: float  # Completions per minute
    avg_io_wait: float
    starvation_time: float  # Longest waiting time seen so far


MetricsCallback = Callable[[MetricsReport], None]


def _mean(values: deque[float]) -> float:
    return sum(values) / len(values)


class MetricAggregator:
    """
    Consume snapshots and maintain rolling scheduling statistics.

    Only the archived tail of each snapshot is used. Processes are counted
    once: the aggregator remembers the newest archived id it has seen and
    walks back from the newest entry until it meets it again. Terminated
    processes never finished their work and are skipped.
    """

    def __init__(
        self,
        period: float = METRIC_UPDATE_INTERVAL,
        window: int = AVG_LOOKBACK_WINDOW,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ) -> None:
        """
        Initialize the MetricAggregator.

        Args:
            period: Seconds between emitted reports. Default 1.0s.
            window: Number of recent completions averaged. Default 20.
            clock: Time source used for throughput.
            logger: Logger for subscriber failures.
        """
        self._period = period
        self._clock = clock
        self._log = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._started_at = clock()
        self._last_id: int | None = None
        self._completed = 0
        self._longest_wait = 0.0
        self._turnaround: deque[float] = deque(maxlen=window)
        self._waiting: deque[float] = deque(maxlen=window)
        self._io_wait: deque[float] = deque(maxlen=window)
        self._callback: MetricsCallback | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def completed(self) -> int:
        """Total completed processes recorded."""
        return self._completed

    @property
    def is_running(self) -> bool:
        """Check if the reporting thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def record(self, snapshot: SchedulerSnapshot) -> int:
        """
        Record the newly archived processes of a snapshot.

        Returns:
            Number of completed processes added to the statistics.
        """
        archived = snapshot.archived
        if not archived:
            return 0

        with self._lock:
            newest = archived[-1].id
            if newest == self._last_id:
                return 0

            added = 0
            for process in reversed(archived):
                if process.id == self._last_id:
                    break
                if process.status is ProcessStatus.TERMINATED or process.ended_at is None:
                    continue
                turnaround = process.ended_at - process.created_at
                waiting = turnaround - process.cpu_time - process.io_time

                self._turnaround.append(turnaround)
                self._waiting.append(max(waiting, 0.0))
                self._io_wait.append(process.io_time)
                self._completed += 1
                self._longest_wait = max(self._longest_wait, waiting)
                added += 1

            self._last_id = newest
            return added

    def report(self) -> MetricsReport | None:
        """Compute the current statistics, or None before the first completion."""
        with self._lock:
            if not self._turnaround:
                return None
            elapsed_minutes = (self._clock() - self._started_at) / 60.0
            throughput = self._completed / elapsed_minutes if elapsed_minutes > 0 else 0.0
            return MetricsReport(
                avg_turnaround=_mean(self._turnaround),
                avg_waiting=_mean(self._waiting),
                throughput=throughput,
                avg_io_wait=_mean(self._io_wait),
                starvation_time=self._longest_wait,
            )

    def subscribe(self, callback: MetricsCallback | None) -> None:
        """Register the single report subscriber. None unsubscribes."""
        self._callback = callback

    def emit(self) -> MetricsReport | None:
        """Compute a report and deliver it to the subscriber, if any."""
        report = self.report()
        callback = self._callback
        if report is None or callback is None:
            return report
        try:
            callback(report)
        except Exception:
            self._log.exception("Metrics subscriber failed")
        return report

    def start(self) -> None:
        """Start the reporting thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._report_loop,
            daemon=True,
            name="MetricAggregator",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the reporting thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _report_loop(self) -> None:
        while not self._stop_event.wait(timeout=self._period):
            self.emit()
