"""Periodic snapshot feed for external consumers."""

import logging
import threading
from collections.abc import Callable

from schedsim.config import SNAPSHOT_PERIOD
from schedsim.models import SchedulerSnapshot

SnapshotCallback = Callable[[SchedulerSnapshot], None]


class SnapshotPublisher:
    """
    Deliver immutable scheduler snapshots to a single subscriber.

    Runs in a separate daemon thread on a fixed period, independent of the
    simulation speed. Subscribing again replaces the previous subscriber.
    """

    def __init__(
        self,
        source: Callable[[], SchedulerSnapshot],
        period: float = SNAPSHOT_PERIOD,
        logger: logging.Logger | None = None,
    ) -> None:
        """
        Initialize the SnapshotPublisher.

        Args:
            source: Produces a fully consistent snapshot on each call.
            period: Seconds between deliveries. Default 0.5s.
            logger: Logger for subscriber failures.
        """
        self._source = source
        self._period = period
        self._log = logger or logging.getLogger(__name__)
        self._callback: SnapshotCallback | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def period(self) -> float:
        """Get the delivery period."""
        return self._period

    @property
    def is_running(self) -> bool:
        """Check if the publisher thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def subscribe(self, callback: SnapshotCallback | None) -> None:
        """Register the subscriber, replacing any previous one. None unsubscribes."""
        self._callback = callback

    def publish_once(self) -> SchedulerSnapshot | None:
        """Take one snapshot and deliver it. Returns None when nobody listens."""
        callback = self._callback
        if callback is None:
            return None
        snapshot = self._source()
        try:
            callback(snapshot)
        except Exception:
            # A broken subscriber must not stop the feed
            self._log.exception("Snapshot subscriber failed")
        return snapshot

    def start(self) -> None:
        """Start the publishing thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._publish_loop,
            daemon=True,
            name="SnapshotPublisher",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the publishing thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _publish_loop(self) -> None:
        while not self._stop_event.wait(timeout=self._period):
            self.publish_once()
