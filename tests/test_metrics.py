"""Tests for the MetricAggregator."""

from queue import Queue

import pytest

from schedsim.metrics import MetricAggregator, MetricsReport
from schedsim.models import ProcessClass, ProcessSnapshot, ProcessStatus, SchedulerSnapshot


def finished(
    pid: int,
    created_at: float,
    ended_at: float,
    cpu_time: int = 2,
    io_time: float = 0.0,
    status: ProcessStatus = ProcessStatus.COMPLETED,
) -> ProcessSnapshot:
    """Build an archived process."""
    return ProcessSnapshot(
        id=pid,
        name=f"p{pid}",
        process_class=ProcessClass.USER,
        priority=10,
        cpu_demand=50,
        cpu_time=cpu_time,
        done=cpu_time,
        mem_need=100,
        status=status,
        created_at=created_at,
        ended_at=ended_at,
        io_time=io_time,
    )


def with_archive(*archived: ProcessSnapshot) -> SchedulerSnapshot:
    """Wrap archived processes in a scheduler snapshot."""
    return SchedulerSnapshot(
        ready_queue=(),
        swap_queue=(),
        running=None,
        archived=archived,
        memory_used=0,
        swap_used=0,
        is_paused=False,
        simulation_speed=1.0,
    )


@pytest.fixture
def aggregator(clock) -> MetricAggregator:
    """An aggregator on the fake clock."""
    return MetricAggregator(clock=clock)


def test_no_report_before_first_completion(aggregator):
    """Test metrics start empty."""
    assert aggregator.report() is None
    assert aggregator.record(with_archive()) == 0


def test_averages(aggregator, clock):
    """Test turnaround, waiting and I/O averages."""
    aggregator.record(
        with_archive(
            finished(0, created_at=0.0, ended_at=10.0, cpu_time=4, io_time=2.0),
            finished(1, created_at=2.0, ended_at=8.0, cpu_time=2),
        )
    )
    clock.advance(30.0)

    report = aggregator.report()

    # Turnaround 10 and 6; waiting 10-4-2=4 and 6-2=4
    assert report.avg_turnaround == pytest.approx(8.0)
    assert report.avg_waiting == pytest.approx(4.0)
    assert report.avg_io_wait == pytest.approx(1.0)
    assert report.throughput == pytest.approx(4.0)  # 2 completions in half a minute
    assert report.starvation_time == pytest.approx(4.0)


def test_processes_are_counted_once(aggregator):
    """Test repeated snapshots of the same archive are deduplicated."""
    first = finished(0, 0.0, 5.0)
    second = finished(1, 1.0, 9.0)

    assert aggregator.record(with_archive(first)) == 1
    assert aggregator.record(with_archive(first)) == 0
    assert aggregator.record(with_archive(first, second)) == 1

    assert aggregator.completed == 2


def test_terminated_processes_are_skipped(aggregator):
    """Test evicted processes never contribute to statistics."""
    archive = with_archive(
        finished(0, 0.0, 3.0, status=ProcessStatus.TERMINATED),
        finished(1, 0.0, 6.0),
    )

    assert aggregator.record(archive) == 1
    assert aggregator.report().avg_turnaround == pytest.approx(6.0)


def test_window_limits_averages(clock):
    """Test only the most recent completions are averaged."""
    aggregator = MetricAggregator(window=2, clock=clock)
    aggregator.record(with_archive(finished(0, 0.0, 100.0)))
    aggregator.record(with_archive(finished(0, 0.0, 100.0), finished(1, 0.0, 4.0)))
    aggregator.record(
        with_archive(finished(0, 0.0, 100.0), finished(1, 0.0, 4.0), finished(2, 0.0, 6.0))
    )

    report = aggregator.report()

    assert report.avg_turnaround == pytest.approx(5.0)
    # The longest wait is remembered beyond the window
    assert report.starvation_time == pytest.approx(98.0)
    assert aggregator.completed == 3


def test_negative_waiting_is_floored(aggregator):
    """Test a process that finished faster than its nominal CPU time."""
    aggregator.record(with_archive(finished(0, 0.0, 1.0, cpu_time=3)))

    assert aggregator.report().avg_waiting == 0.0


def test_emit_delivers_to_subscriber(aggregator):
    """Test reports are pushed to the single subscriber."""
    received: list[MetricsReport] = []
    aggregator.subscribe(received.append)

    assert aggregator.emit() is None
    aggregator.record(with_archive(finished(0, 0.0, 5.0)))
    aggregator.emit()

    assert len(received) == 1
    assert received[0].avg_turnaround == pytest.approx(5.0)


def test_emit_survives_failing_subscriber(aggregator):
    """Test a broken subscriber does not break reporting."""
    def broken(report: MetricsReport) -> None:
        raise RuntimeError("boom")

    aggregator.subscribe(broken)
    aggregator.record(with_archive(finished(0, 0.0, 5.0)))

    assert aggregator.emit() is not None


def test_reporting_thread():
    """Test the aggregator pushes reports from its own thread."""
    queue: Queue[MetricsReport] = Queue()
    aggregator = MetricAggregator(period=0.05)
    aggregator.subscribe(queue.put)
    aggregator.record(with_archive(finished(0, 0.0, 5.0)))

    aggregator.start()
    try:
        assert aggregator.is_running
        report = queue.get(timeout=2.0)
        assert isinstance(report, MetricsReport)
    finally:
        aggregator.stop()

    assert not aggregator.is_running
