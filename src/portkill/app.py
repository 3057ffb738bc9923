"""port-kill - Textual status application."""

import logging
from functools import partial
from queue import Empty

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from portkill.engine import Engine
from portkill.errors import TerminationError
from portkill.models import ProcessDescriptor, ProcessUpdate, Snapshot, StatusSummary

logger = logging.getLogger(__name__)


class StatusHeader(Static):
    """Header widget showing the process count and monitored ports."""

    DEFAULT_CSS = """
    StatusHeader {
        height: auto;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, port_description: str, *args, **kwargs) -> None:
        """Initialize StatusHeader."""
        super().__init__(*args, **kwargs)
        self._port_description = port_description
        self._status = StatusSummary.from_count(0)

    @property
    def status(self) -> StatusSummary:
        return self._status

    def on_mount(self) -> None:
        self.update(self._render_status())

    def update_status(self, count: int) -> None:
        """Update the header from a process count."""
        self._status = StatusSummary.from_count(count)
        self.update(self._render_status())

    def _render_status(self) -> str:
        color = "green" if self._status.text == "0" else "red"
        return (
            f"[bold {color}]{self._status.text}[/bold {color}] {self._status.tooltip}\n"
            f"[dim]Monitoring {self._port_description}[/dim]"
        )


class PortTable(Container):
    """Container for the table of processes listening on monitored ports."""

    DEFAULT_CSS = """
    PortTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, show_pid: bool = True, *args, **kwargs) -> None:
        """Initialize PortTable."""
        super().__init__(*args, **kwargs)
        self._show_pid = show_pid
        self._snapshot = Snapshot.empty()

    @property
    def snapshot(self) -> Snapshot:
        """The snapshot currently displayed."""
        return self._snapshot

    def compose(self) -> ComposeResult:
        """Compose the port table."""
        yield DataTable(id="port-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#port-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PORT", key="port", width=7)
        if self._show_pid:
            table.add_column("PID", key="pid", width=8)
        table.add_column("NAME", key="name", width=20)
        table.add_column("CONTAINER", key="container", width=20)
        table.add_column("Command", key="command")

    def update_processes(self, snapshot: Snapshot) -> None:
        """
        Replace the table contents with a new snapshot.

        Rows are ordered by port and the cursor stays on the same port when
        that port is still present.
        """
        table = self.query_one("#port-table", DataTable)
        selected = self.selected_port()

        table.clear()
        for desc in snapshot.descriptors():
            table.add_row(*self._cells(desc), key=str(desc.port))
        self._snapshot = snapshot

        ports = snapshot.ports()
        if selected in ports:
            table.move_cursor(row=ports.index(selected))

    def selected_port(self) -> int | None:
        """Port of the row under the cursor, if any."""
        table = self.query_one("#port-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return int(row_key.value)

    def selected_process(self) -> ProcessDescriptor | None:
        port = self.selected_port()
        return self._snapshot.get(port) if port is not None else None

    def _cells(self, desc: ProcessDescriptor) -> list[str]:
        cells = [str(desc.port)]
        if self._show_pid:
            cells.append(str(desc.pid))
        cells.append(desc.name[:20])
        container = desc.container_name or desc.container_id or ""
        cells.append(container[:20])
        cells.append(desc.command)
        return cells


class PortKillApp(App):
    """Main port-kill application."""

    TITLE = "port-kill"
    SUB_TITLE = "Development Port Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #status-header {
        dock: top;
        height: auto;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("k", "kill_selected", "Kill"),
        ("a", "kill_all", "Kill All"),
    ]

    def __init__(self, engine: Engine, show_pid: bool = True) -> None:
        """Initialize the PortKillApp."""
        super().__init__()
        self._engine = engine
        self._show_pid = show_pid

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield StatusHeader(self._engine.config.describe(), id="status-header")
        yield PortTable(show_pid=self._show_pid)
        yield Footer()

    def on_mount(self) -> None:
        """Start the port monitor when the app is mounted."""
        self._engine.monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Check the queue for change events and refresh the UI."""
        # Only the most recent event matters
        update = None
        while True:
            try:
                update = self._engine.updates.get_nowait()
            except Empty:
                break

        if update is not None:
            self._update_ui(update)

    def _update_ui(self, update: ProcessUpdate) -> None:
        """Update the UI with a change event."""
        self.query_one("#status-header", StatusHeader).update_status(update.count)
        self.query_one(PortTable).update_processes(update.snapshot)

    def action_kill_selected(self) -> None:
        """Kill the process in the selected row."""
        desc = self.query_one(PortTable).selected_process()
        if desc is None:
            self.notify("No process selected", severity="warning")
            return
        self.run_worker(
            partial(self._kill_process, desc),
            name=f"kill-{desc.pid}",
            group="kill",
            thread=True,
        )

    def action_kill_all(self) -> None:
        """Kill every process currently listening on a monitored port."""
        self.run_worker(self._kill_all, name="kill-all", group="kill", thread=True)

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._engine.monitor.stop()
        self.exit()

    def _kill_process(self, desc: ProcessDescriptor) -> None:
        """Terminate one process. Runs in a worker thread."""
        try:
            self._engine.terminator.terminate(desc.pid)
        except TerminationError as e:
            self.call_from_thread(
                self.notify,
                f"Failed to kill {desc.name} on port {desc.port}: {e}",
                severity="error",
            )
            return
        except Exception:
            logger.exception("Kill of PID %d failed", desc.pid)
            self.call_from_thread(
                self.notify, f"Failed to kill {desc.name} on port {desc.port}", severity="error"
            )
            return
        self.call_from_thread(self.notify, f"Killed {desc.name} on port {desc.port}")

    def _kill_all(self) -> None:
        """Terminate every visible process. Runs in a worker thread."""
        try:
            count = self._engine.terminator.terminate_all()
        except TerminationError as e:
            self.call_from_thread(self.notify, str(e), severity="error")
            return
        except Exception:
            logger.exception("Kill all failed")
            self.call_from_thread(self.notify, "Kill all failed", severity="error")
            return
        self.call_from_thread(self.notify, f"Killed {count} process(es)")
