"""Console presentation: print every change event to a stream."""

import sys
import threading
from queue import Empty, Queue
from typing import TextIO

from portkill.models import ProcessDescriptor, ProcessUpdate, StatusSummary


def format_process(desc: ProcessDescriptor, show_pid: bool = False) -> str:
    """Format one process as a single line."""
    line = f"Port {desc.port}: {desc.name}"
    if show_pid:
        line += f" (PID {desc.pid})"
    line += f" - {desc.command}"
    if desc.container_name:
        line += f" [Docker: {desc.container_name}]"
    return line


def render_update(update: ProcessUpdate, show_pid: bool = False) -> str:
    """Render a change event as the block of text printed in console mode."""
    status = StatusSummary.from_count(update.count)
    lines = [f"Port Status: {status.text} - {status.tooltip}"]
    if update.count > 0:
        lines.append("Detected Processes:")
        lines.extend(f"   - {format_process(desc, show_pid)}" for desc in update.snapshot)
    return "\n".join(lines)


class ConsoleReporter:
    """Drain the update queue and print each change event."""

    def __init__(
        self,
        update_queue: Queue[ProcessUpdate],
        show_pid: bool = False,
        stream: TextIO | None = None,
    ) -> None:
        self._queue = update_queue
        self._show_pid = show_pid
        self._stream = stream if stream is not None else sys.stdout

    def report(self, update: ProcessUpdate) -> None:
        print(render_update(update, self._show_pid), file=self._stream)
        print(file=self._stream)
        self._stream.flush()

    def run(self, stop_event: threading.Event, poll_timeout: float = 0.1) -> None:
        """Print updates until stop_event is set."""
        while not stop_event.is_set():
            try:
                update = self._queue.get(timeout=poll_timeout)
            except Empty:
                continue
            self.report(update)
