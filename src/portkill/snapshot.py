"""Snapshot builder: one sampling pass over the monitored ports."""

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor

from portkill.errors import PortKillError, ScanError
from portkill.models import ContainerRef, ProcessDescriptor, Snapshot
from portkill.probes import ContainerLocator, PortLister, ProcessDescriber

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


class SnapshotBuilder:
    """
    Compose the port lister, process describer and optional container
    locator into a Snapshot.

    Ports are probed independently. A probe that fails drops its port from
    the snapshot. Only a ScanError, raised when the listener table as a
    whole cannot be read, fails the pass.
    """

    def __init__(
        self,
        ports: Iterable[int],
        lister: PortLister,
        describer: ProcessDescriber,
        locator: ContainerLocator | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        """
        Initialize the SnapshotBuilder.

        Args:
            ports: Ports to probe on every pass.
            lister: Finds the pid listening on a port.
            describer: Turns a pid into a command string.
            locator: Maps a pid to its Docker container. None disables
                container awareness.
            max_workers: Concurrent probes per pass. 1 probes sequentially.
        """
        self._ports = tuple(ports)
        self._lister = lister
        self._describer = describer
        self._locator = locator
        self._max_workers = max(1, max_workers)

    @property
    def ports(self) -> tuple[int, ...]:
        return self._ports

    @property
    def container_aware(self) -> bool:
        return self._locator is not None

    def build(self, fresh: bool = False) -> Snapshot:
        """
        Probe every port and return the completed snapshot.

        With ``fresh`` set, any listener table cached by the lister is
        discarded first.

        Raises:
            ScanError: The pass could not run at all.
        """
        if fresh:
            self._lister.invalidate()
        try:
            if self._max_workers == 1 or len(self._ports) <= 1:
                results = [self._probe(port) for port in self._ports]
            else:
                with ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="port-probe"
                ) as executor:
                    try:
                        results = list(executor.map(self._probe, self._ports))
                    except ScanError:
                        executor.shutdown(cancel_futures=True)
                        raise
        except RuntimeError as e:
            # Thread pool could not be started, e.g. during interpreter shutdown
            raise ScanError(f"Failed to scan ports: {e}") from e

        return Snapshot({desc.port: desc for desc in results if desc is not None})

    def _probe(self, port: int) -> ProcessDescriptor | None:
        """Look up one port. Returns None when nothing usable is bound to it."""
        try:
            pid = self._lister.owner(port)
            if pid is None:
                return None
            command = self._describer.describe(pid)
            container = self._container_for(pid) if self._locator else None
        except ScanError:
            raise
        except Exception as e:
            logger.debug("Lookup failed for port %d: %s", port, e)
            return None

        return ProcessDescriptor.create(pid=pid, port=port, command=command, container=container)

    def _container_for(self, pid: int) -> ContainerRef | None:
        try:
            container_id = self._locator.find_container(pid)
        except PortKillError as e:
            logger.debug("Container lookup failed for PID %d: %s", pid, e)
            return None
        if container_id is None:
            return None

        try:
            name = self._locator.container_name(container_id)
        except PortKillError as e:
            logger.debug("Container name lookup failed for %s: %s", container_id, e)
            name = None
        return ContainerRef(id=container_id, name=name)
