"""schedsim - Main Textual application."""

import logging
import random
from collections import deque
from logging.handlers import QueueHandler
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.timer import Timer
from textual.widgets import DataTable, Footer, Log, Sparkline, Static

from schedsim.config import SchedulerConfig
from schedsim.engine import Scheduler
from schedsim.metrics import MetricAggregator, MetricsReport
from schedsim.models import ProcessClass, ProcessSnapshot, ProcessStatus, SchedulerSnapshot
from schedsim.workload import random_batch, random_request

SPEED_STEP = 0.5
AUTOGEN_PERIOD = 1.5  # Seconds between auto-generated bursts
USAGE_SAMPLES = 100  # Snapshots kept per usage chart


def format_mb(size: int) -> str:
    """Format megabytes as human-readable string."""
    if size < 1024:
        return f"{size}M"
    return f"{size / 1024:.1f}G"


def usage_bar(used: int, total: int, color: str, width: int = 20) -> str:
    """Render a usage bar with Rich markup."""
    filled = int(width * used / total) if total > 0 else 0
    filled = min(filled, width)
    return f"[{color}]█[/{color}]" * filled + "[dim]░[/dim]" * (width - filled)


class HeaderStats(Static):
    """Header widget showing memory, swap, the running process and metrics."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, max_memory: int, max_swap: int, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._max_memory = max_memory
        self._max_swap = max_swap
        self._snapshot: SchedulerSnapshot | None = None
        self._metrics: MetricsReport | None = None

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_resource_info(), id="resource-info"),
            Static(self._get_metrics_info(), id="metrics-info"),
        )

    def update_stats(self, snapshot: SchedulerSnapshot) -> None:
        """Update the statistics from a scheduler snapshot."""
        self._snapshot = snapshot
        self._refresh_display()

    def update_metrics(self, report: MetricsReport) -> None:
        """Update the aggregated metrics."""
        self._metrics = report
        self._refresh_display()

    def _refresh_display(self) -> None:
        """Refresh the display with current data."""
        try:
            self.query_one("#resource-info", Static).update(self._get_resource_info())
            self.query_one("#metrics-info", Static).update(self._get_metrics_info())
        except Exception:
            pass  # Widget not mounted yet

    def _get_resource_info(self) -> str:
        """Get memory, swap and CPU display."""
        snapshot = self._snapshot
        if snapshot is None:
            return "Waiting for scheduler..."

        running = snapshot.running
        if running is None:
            cpu_line = "CPU  idle"
        else:
            cpu_line = (
                f"CPU  P{running.id} {running.name} {running.done}/{running.cpu_time} "
                f"({running.status.value}, {running.cpu_demand}%)"
            )
        state = "[red]PAUSED[/red]" if snapshot.is_paused else "[green]RUNNING[/green]"

        # Use escaped brackets for the bar containers
        return (
            f"Mem\\[{usage_bar(snapshot.memory_used, self._max_memory, 'cyan')}] "
            f"{format_mb(snapshot.memory_used)}/{format_mb(self._max_memory)}\n"
            f"Swp\\[{usage_bar(snapshot.swap_used, self._max_swap, 'yellow')}] "
            f"{format_mb(snapshot.swap_used)}/{format_mb(self._max_swap)}\n"
            f"{cpu_line}\n"
            f"{state}  speed {snapshot.simulation_speed:.1f}x"
        )

    def _get_metrics_info(self) -> str:
        """Get scheduling metrics display."""
        report = self._metrics
        if report is None:
            return "Avg TAT: N/A\nAvg WT: N/A\nThroughput: N/A\nAvg I/O: N/A\nMax wait: N/A"
        return (
            f"Avg TAT: {report.avg_turnaround:.2f}s\n"
            f"Avg WT: {report.avg_waiting:.2f}s\n"
            f"Throughput: {report.throughput:.2f}/min\n"
            f"Avg I/O: {report.avg_io_wait:.2f}s\n"
            f"Max wait: {report.starvation_time:.2f}s"
        )


class UsageCharts(Horizontal):
    """Rolling memory, swap and CPU demand sparklines."""

    DEFAULT_CSS = """
    UsageCharts {
        height: 5;
    }

    UsageCharts Sparkline {
        width: 1fr;
        height: 100%;
        border: solid $primary;
    }
    """

    CHARTS = [
        ("memory", "Memory (MB)"),
        ("swap", "Swap (MB)"),
        ("cpu", "CPU demand (%)"),
    ]

    def compose(self) -> ComposeResult:
        """Compose one sparkline per tracked resource."""
        for key, title in self.CHARTS:
            sparkline = Sparkline([], summary_function=max, id=f"{key}-history")
            sparkline.border_title = title
            yield sparkline

    def update_history(self, history: dict[str, list[int]]) -> None:
        """Replace the plotted samples."""
        for key, _ in self.CHARTS:
            self.query_one(f"#{key}-history", Sparkline).data = history[key]


class ProcessTable(Container):
    """Container for one process data table (ready, swap or history)."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    COLUMNS = [
        ("PID", "pid", 6),
        ("Name", "name", 10),
        ("Class", "class", 11),
        ("Pri", "priority", 5),
        ("CPU%", "demand", 5),
        ("Done", "done", 7),
        ("Mem", "mem", 7),
        ("Status", "status", 11),
    ]

    def __init__(self, title: str, *args, newest_first: bool = False, **kwargs) -> None:
        """
        Initialize ProcessTable.

        Args:
            title: Border title of the table.
            newest_first: Show rows in reverse order (used for history).
        """
        super().__init__(*args, **kwargs)
        self.border_title = title
        self._newest_first = newest_first
        self._row_order: list[int] = []

    @property
    def process_ids(self) -> list[int]:
        """Get the ids currently displayed, top row first."""
        return list(self._row_order)

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable()

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        for label, key, width in self.COLUMNS:
            table.add_column(label, key=key, width=width)

    def update_processes(self, processes: tuple[ProcessSnapshot, ...]) -> None:
        """
        Update the table with new data.

        Uses update_cell when the row order is unchanged to avoid re-rendering
        the whole table; rebuilds it when the queue order changed.
        """
        table = self.query_one(DataTable)
        ordered = list(reversed(processes)) if self._newest_first else list(processes)
        new_order = [proc.id for proc in ordered]

        if new_order == self._row_order:
            for proc in ordered:
                self._update_row(table, proc)
            return

        table.clear()
        for proc in ordered:
            table.add_row(*self._cells(proc), key=str(proc.id))
        self._row_order = new_order

    def _update_row(self, table: DataTable, proc: ProcessSnapshot) -> None:
        """Update an existing row using update_cell for performance."""
        row_key = str(proc.id)
        try:
            for (_, key, _), value in zip(self.COLUMNS, self._cells(proc)):
                table.update_cell(row_key, key, value)
        except Exception:
            pass  # Row may have been removed

    @staticmethod
    def _cells(proc: ProcessSnapshot) -> tuple[str, ...]:
        return (
            str(proc.id),
            proc.name[:10],
            proc.process_class.name.title(),
            str(proc.priority),
            str(proc.cpu_demand),
            f"{proc.done}/{proc.cpu_time}",
            format_mb(proc.mem_need),
            proc.status.value,
        )


class SchedsimApp(App):
    """Main schedsim application."""

    TITLE = "schedsim"
    SUB_TITLE = "Process Scheduler Simulator"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 7;
    }

    Horizontal {
        height: auto;
    }

    #resource-info {
        width: 1fr;
        padding-right: 2;
    }

    #metrics-info {
        width: 1fr;
        padding-left: 2;
    }

    #usage-charts {
        height: 5;
    }

    #queues {
        height: 1fr;
    }

    #system-log {
        height: 8;
        border: solid $secondary;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("space", "toggle_pause", "Pause"),
        ("plus", "faster", "Faster"),
        ("minus", "slower", "Slower"),
        ("s", "add_process('system')", "System"),
        ("u", "add_process('user')", "User"),
        ("b", "add_process('background')", "Background"),
        ("g", "toggle_autogen", "Auto"),
    ]

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the SchedsimApp."""
        super().__init__()
        self._config = config if config is not None else SchedulerConfig()
        self._rng = rng or random.Random()
        self._session_logger = logging.getLogger("schedsim.session")
        self._log_queue: Queue[logging.LogRecord] = Queue()
        self._log_handler = QueueHandler(self._log_queue)
        self._update_queue: Queue[SchedulerSnapshot] = Queue()
        self._metrics_queue: Queue[MetricsReport] = Queue()
        self._scheduler = Scheduler(self._config, logger=self._session_logger)
        self._metrics = MetricAggregator(logger=self._session_logger)
        self._autogen_timer: Timer | None = None
        self._autogenerating = False
        self._memory_history: deque[int] = deque(maxlen=USAGE_SAMPLES)
        self._swap_history: deque[int] = deque(maxlen=USAGE_SAMPLES)
        self._cpu_history: deque[int] = deque(maxlen=USAGE_SAMPLES)

    @property
    def autogenerating(self) -> bool:
        """Whether random processes are being generated."""
        return self._autogenerating

    def get_usage_history(self) -> dict[str, list[int]]:
        """Get the recorded memory, swap (MB) and CPU demand (%) samples, oldest first."""
        return {
            "memory": list(self._memory_history),
            "swap": list(self._swap_history),
            "cpu": list(self._cpu_history),
        }

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(self._config.max_memory, self._config.max_swap, id="header-stats")
        yield UsageCharts(id="usage-charts")
        yield Horizontal(
            ProcessTable("Ready queue", id="ready-table"),
            ProcessTable("Swap", id="swap-table"),
            ProcessTable("History", id="history-table", newest_first=True),
            id="queues",
        )
        yield Log(id="system-log", max_lines=500)
        yield Footer()

    def on_mount(self) -> None:
        """Start the scheduler and metrics when the app is mounted."""
        self._session_logger.setLevel(logging.INFO)
        self._session_logger.propagate = False
        self._session_logger.addHandler(self._log_handler)

        self._scheduler.subscribe(self._on_snapshot)
        self._metrics.subscribe(self._metrics_queue.put)
        self._scheduler.start()
        self._metrics.start()

        self.set_interval(0.5, self._check_for_updates)
        self._autogen_timer = self.set_interval(AUTOGEN_PERIOD, self._auto_generate, pause=True)

    def on_unmount(self) -> None:
        """Stop background threads and detach the log handler."""
        self._stop_session()

    def _stop_session(self) -> None:
        self._scheduler.stop()
        self._metrics.stop()
        self._session_logger.removeHandler(self._log_handler)

    def _on_snapshot(self, snapshot: SchedulerSnapshot) -> None:
        """Publisher callback; runs on the publisher thread."""
        self._metrics.record(snapshot)
        self._update_queue.put(snapshot)

    def _check_for_updates(self) -> None:
        """Check the queues for updates and refresh the UI."""
        # Drain the queue; every snapshot is a usage sample, the last one is shown
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break
            self._record_usage(snapshot)
        if snapshot is not None:
            self._update_ui(snapshot)

        report = None
        while True:
            try:
                report = self._metrics_queue.get_nowait()
            except Empty:
                break
        if report is not None:
            self.query_one("#header-stats", HeaderStats).update_metrics(report)

        self._drain_log()

    def _drain_log(self) -> None:
        """Move pending log records into the system log widget."""
        log = self.query_one("#system-log", Log)
        while True:
            try:
                record = self._log_queue.get_nowait()
            except Empty:
                break
            log.write_line(f"[{record.levelname}] {record.getMessage()}")

    def _record_usage(self, snapshot: SchedulerSnapshot) -> None:
        """Append one memory, swap and CPU demand sample."""
        running = snapshot.running
        busy = running is not None and running.status is ProcessStatus.RUNNING
        self._memory_history.append(snapshot.memory_used)
        self._swap_history.append(snapshot.swap_used)
        self._cpu_history.append(running.cpu_demand if busy else 0)

    def _update_ui(self, snapshot: SchedulerSnapshot) -> None:
        """Update the UI with the new scheduler snapshot."""
        self.query_one("#header-stats", HeaderStats).update_stats(snapshot)
        self.query_one("#usage-charts", UsageCharts).update_history(self.get_usage_history())
        self.query_one("#ready-table", ProcessTable).update_processes(snapshot.ready_queue)
        self.query_one("#swap-table", ProcessTable).update_processes(snapshot.swap_queue)
        self.query_one("#history-table", ProcessTable).update_processes(snapshot.archived)

    def _submit(self, process_class: ProcessClass) -> bool:
        request = random_request(process_class, self._rng)
        return request.submit(self._scheduler)

    def _auto_generate(self) -> None:
        """Admit a random burst of processes unless paused."""
        if self._scheduler.is_paused:
            return
        for request in random_batch(self._rng):
            request.submit(self._scheduler)

    def action_toggle_pause(self) -> None:
        """Pause or resume the simulation."""
        paused = not self._scheduler.is_paused
        self._scheduler.set_paused(paused)
        self.notify("Paused" if paused else "Resumed")

    def action_faster(self) -> None:
        """Increase the simulation speed."""
        self._scheduler.set_simulation_speed(self._scheduler.simulation_speed + SPEED_STEP)
        self.notify(f"Speed: {self._scheduler.simulation_speed:.1f}x")

    def action_slower(self) -> None:
        """Decrease the simulation speed."""
        self._scheduler.set_simulation_speed(self._scheduler.simulation_speed - SPEED_STEP)
        self.notify(f"Speed: {self._scheduler.simulation_speed:.1f}x")

    def action_add_process(self, kind: str) -> None:
        """Admit one random process of the given class."""
        process_class = ProcessClass[kind.upper()]
        if not self._submit(process_class):
            self.notify(f"Failed to add {kind} process: insufficient resources", severity="warning")

    def action_toggle_autogen(self) -> None:
        """Toggle automatic process generation."""
        if self._autogen_timer is None:
            return
        if self.autogenerating:
            self._autogen_timer.pause()
            self._autogenerating = False
            self.notify("Auto-generation off")
        else:
            self._autogen_timer.resume()
            self._autogenerating = True
            self.notify("Auto-generation on")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._stop_session()
        self.exit()


def main() -> None:
    """Entry point for schedsim application."""
    app = SchedsimApp()
    app.run()


if __name__ == "__main__":
    main()
