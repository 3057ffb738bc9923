"""Graceful-then-forceful termination of processes and containers."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from portkill.errors import (
    BatchTerminationError,
    ContainerError,
    PortKillError,
    ProcessNotFoundError,
    SignalError,
    TerminationError,
)
from portkill.probes import ContainerLocator, ContainerRuntime, Signal, Signaller
from portkill.snapshot import SnapshotBuilder

logger = logging.getLogger(__name__)

# Seconds to wait after SIGTERM before checking whether SIGKILL is needed
GRACE_PERIOD = 0.5


@dataclass(slots=True, frozen=True)
class TerminationFailure:
    """One failed target of a kill-all request."""

    port: int
    pid: int
    reason: str

    def __str__(self) -> str:
        return f"Port {self.port} (PID {self.pid}): {self.reason}"


class Terminator:
    """
    Terminate processes bound to monitored ports.

    Plain processes get SIGTERM, a grace period, then SIGKILL if they are
    still alive. When container awareness is on and the process lives in a
    Docker container, the container is stopped instead (falling back to a
    forced remove) and the process is never signalled directly.
    """

    def __init__(
        self,
        builder: SnapshotBuilder,
        signaller: Signaller,
        locator: ContainerLocator | None = None,
        runtime: ContainerRuntime | None = None,
        grace_period: float = GRACE_PERIOD,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if (locator is None) != (runtime is None):
            raise ValueError("locator and runtime must be given together")
        self._builder = builder
        self._signaller = signaller
        self._locator = locator
        self._runtime = runtime
        self._grace_period = grace_period
        self._sleep = sleep

    def terminate(self, pid: int) -> None:
        """
        Terminate the process, or the container holding it.

        Raises:
            ProcessNotFoundError: The process was already gone.
            SignalError: A signal could not be delivered, or ``pid`` is not
                a positive process id.
            ContainerError: Both stopping and removing the container failed.
        """
        if pid <= 0:
            # kill(2) treats 0 and negative pids as process groups
            raise SignalError(pid, f"Invalid PID: {pid}")
        logger.info("Attempting to kill process %d", pid)

        container_id = self._container_for(pid)
        if container_id is not None:
            logger.info("Process %d is in Docker container %s, stopping container", pid, container_id)
            self._stop_container(container_id)
            return

        self._signal_process(pid)

    def terminate_all(self) -> int:
        """
        Terminate every process currently bound to a monitored port.

        Takes a fresh snapshot, so it acts on what is listening right now.
        Every target is attempted even if some fail.

        Returns:
            Number of targets terminated.

        Raises:
            BatchTerminationError: At least one target failed. Carries every
                failure.
        """
        logger.info("Killing all monitored processes")
        snapshot = self._builder.build(fresh=True)

        failures: list[TerminationFailure] = []
        for desc in snapshot.descriptors():
            logger.info("Killing process on port %d (PID: %d)", desc.port, desc.pid)
            try:
                self.terminate(desc.pid)
            except TerminationError as e:
                failures.append(TerminationFailure(port=desc.port, pid=desc.pid, reason=e.reason))

        if failures:
            error = BatchTerminationError(failures)
            logger.error("%s", error)
            raise error

        logger.info("All processes killed successfully (%d)", snapshot.count)
        return snapshot.count

    def _container_for(self, pid: int) -> str | None:
        if self._locator is None:
            return None
        try:
            return self._locator.find_container(pid)
        except PortKillError as e:
            logger.warning("Container lookup for PID %d failed, signalling process: %s", pid, e)
            return None

    def _signal_process(self, pid: int) -> None:
        try:
            self._signaller.send(pid, Signal.GRACEFUL)
        except TerminationError as e:
            logger.error("Failed to send SIGTERM to process %d: %s", pid, e)
            raise
        logger.info("Sent SIGTERM to process %d", pid)

        self._sleep(self._grace_period)

        if not self._signaller.is_alive(pid):
            logger.info("Process %d terminated successfully with SIGTERM", pid)
            return

        logger.warning("Process %d still running after SIGTERM, sending SIGKILL", pid)
        try:
            self._signaller.send(pid, Signal.FORCEFUL)
        except ProcessNotFoundError:
            logger.info("Process %d exited before SIGKILL", pid)
            return
        except TerminationError as e:
            logger.error("Failed to send SIGKILL to process %d: %s", pid, e)
            raise
        logger.info("Sent SIGKILL to process %d", pid)

    def _stop_container(self, container_id: str) -> None:
        try:
            self._runtime.stop(container_id)
        except ContainerError as e:
            logger.info("Graceful stop failed, force removing container %s: %s", container_id, e)
        else:
            logger.info("Docker container %s stopped gracefully", container_id)
            return

        try:
            self._runtime.remove_force(container_id)
        except ContainerError as e:
            logger.error("%s", e)
            raise
        logger.info("Docker container %s force removed", container_id)
