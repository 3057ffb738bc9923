"""Reconciliation loop for port-kill."""

import logging
import threading
from queue import Queue

from portkill.config import MONITORING_INTERVAL
from portkill.models import ProcessUpdate, Snapshot
from portkill.snapshot import SnapshotBuilder

logger = logging.getLogger(__name__)


class PortMonitor:
    """
    Port monitor that samples snapshots and publishes changes.

    Runs in a separate daemon thread. Every pass builds a fresh snapshot and
    compares it with the last published one; a ProcessUpdate is pushed to the
    queue only when they differ. Scan failures are logged and the loop keeps
    going with the previous snapshot.
    """

    def __init__(
        self,
        builder: SnapshotBuilder,
        update_queue: Queue[ProcessUpdate],
        poll_rate: float = MONITORING_INTERVAL,
    ) -> None:
        """
        Initialize the PortMonitor.

        Args:
            builder: Builds one snapshot per pass.
            update_queue: Thread-safe queue to push change events to.
            poll_rate: Seconds between passes. Default 2.0s.
        """
        self._builder = builder
        self._queue = update_queue
        self._poll_rate = poll_rate
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._current = Snapshot.empty()

    @property
    def poll_rate(self) -> float:
        """Get the poll rate."""
        return self._poll_rate

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            if not self._stop_event.is_set():
                return
            # A previous stop() timed out; let that loop finish its last pass
            self._thread.join()

        ports = self._builder.ports
        if len(ports) <= 10:
            description = "ports: " + ", ".join(str(port) for port in ports)
        else:
            description = f"{len(ports)} ports: {ports[0]} to {ports[-1]}"
        logger.info("Starting process monitoring on %s", description)

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="PortMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds). If the
                thread is still inside a pass when it expires, it is kept
                and start() waits for it.
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Monitor thread still finishing a scan after %ss", timeout)
            else:
                self._thread = None

    def poll_once(self) -> ProcessUpdate | None:
        """
        Run a single sampling pass.

        Returns the published update, or None when the scan failed or nothing
        changed.
        """
        try:
            snapshot = self._builder.build()
        except Exception:
            logger.exception("Failed to scan processes")
            return None

        if snapshot == self._current:
            return None

        self._current = snapshot
        update = ProcessUpdate.from_snapshot(snapshot)
        logger.info("Process update: %d processes found", update.count)
        self._queue.put(update)
        return update

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            self.poll_once()

            # Wait for poll_rate seconds or until stop is requested
            self._stop_event.wait(timeout=self._poll_rate)
