"""proctop - Main Textual application."""

from queue import Empty, Queue

import structlog
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from proctop.config import Config
from proctop.models import ProcessRecord, Snapshot
from proctop.monitor import SamplingScheduler, SchedulerState

log = structlog.get_logger()


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


class Banner(Static):
    """Top banner with the quit hint and the latest tick summary."""

    DEFAULT_CSS = """
    Banner {
        height: auto;
        min-height: 3;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize Banner."""
        super().__init__(*args, **kwargs)
        self._tick: int = 0
        self._process_count: int = 0
        self._degraded: bool = False

    def on_mount(self) -> None:
        """Render the initial banner."""
        self.update(self._summary_text())

    def update_summary(self, snapshot: Snapshot) -> None:
        """Update the summary line from a snapshot."""
        self._tick = snapshot.tick
        self._process_count = len(snapshot.processes)
        self._degraded = snapshot.degraded
        self.update(self._summary_text())

    def _summary_text(self) -> str:
        title = "[bold cyan]proctop[/] Linux Task Manager"
        hint = "Press 'q' or 'Esc' to quit."
        if self._tick == 0:
            return f"{title}\n{hint}\nWaiting for first sample..."
        summary = f"Tick {self._tick}: {self._process_count} processes"
        if self._degraded:
            summary += " [bold red](system counters unavailable)[/]"
        return f"{title}\n{hint}\n{summary}"


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
        border-title-color: $text;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._current_pids: list[int] = []

    @property
    def current_pids(self) -> list[int]:
        """Pids of the rendered snapshot, in display order."""
        return list(self._current_pids)

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        self.border_title = "Process List"
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("Name", key="name", width=20)
        table.add_column("S", key="state", width=3)
        table.add_column("PPID", key="ppid", width=8)
        table.add_column("RES", key="rss", width=8)
        table.add_column("CPU%", key="cpu", width=8)

    def update_processes(self, processes: tuple[ProcessRecord, ...]) -> None:
        """
        Replace the table contents with a snapshot.

        Each snapshot is complete, so rows are rebuilt in the snapshot's order
        rather than patched in place. The cursor stays on the same row index.
        """
        table = self.query_one("#process-table", DataTable)
        cursor_row = table.cursor_row

        table.clear()
        for proc in processes:
            table.add_row(
                str(proc.pid),
                proc.name[:20],
                proc.state,
                str(proc.ppid),
                format_bytes(proc.memory_rss),
                f"{proc.cpu_percent:5.1f}",
                key=str(proc.pid),
            )
        self._current_pids = [proc.pid for proc in processes]

        if processes:
            table.move_cursor(row=min(cursor_row, len(processes) - 1))


class ProctopApp(App):
    """Main proctop application."""

    TITLE = "proctop"
    SUB_TITLE = "Linux Task Manager"

    CSS = """
    Screen {
        layout: vertical;
    }

    #banner {
        dock: top;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("Q", "quit", "Quit", show=False),
        Binding("escape", "quit", "Quit", show=False),
    ]

    def __init__(self, config: Config | None = None) -> None:
        """Initialize the ProctopApp."""
        super().__init__()
        self._app_config = config or Config()
        self._update_queue: Queue[Snapshot] = Queue()
        self._scheduler = SamplingScheduler(self._update_queue, config=self._app_config)

    @property
    def scheduler(self) -> SamplingScheduler:
        """Get the sampling scheduler."""
        return self._scheduler

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Banner(id="banner")
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the scheduler when the app is mounted."""
        self._scheduler.start()
        # Poll the queue faster than the refresh interval so no tick is missed
        self.set_interval(
            min(0.5, self._scheduler.refresh_interval / 2), self._check_for_updates
        )

    def on_unmount(self) -> None:
        """Make sure the scheduler thread does not outlive the app."""
        self._scheduler.stop()

    def _check_for_updates(self) -> None:
        """Render the newest snapshot, or exit once the scheduler has stopped."""
        if self._scheduler.state is SchedulerState.STOPPED:
            self.exit()
            return

        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self.render_snapshot(snapshot)

    def render_snapshot(self, snapshot: Snapshot) -> None:
        """Update the widgets with a snapshot."""
        self.query_one("#banner", Banner).update_summary(snapshot)
        self.query_one(ProcessTable).update_processes(snapshot.processes)

    def action_quit(self) -> None:
        """Post quit to the scheduler; the app exits once the loop has stopped."""
        log.info("quit_requested", ticks=self._scheduler.ticks)
        self._scheduler.request_stop()
