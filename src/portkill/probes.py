"""
OS and Docker adapters used by the snapshot builder and the terminator.

Each adapter exposes a narrow interface so the core can run against
in-memory fakes in tests.
"""

import logging
import signal
import subprocess
import threading
import time
from enum import Enum
from typing import Protocol

import psutil

from portkill.errors import (
    ContainerError,
    LookupFailure,
    ProcessNotFoundError,
    ScanError,
    SignalError,
)
from portkill.models import UNKNOWN_COMMAND

logger = logging.getLogger(__name__)

LSOF_TIMEOUT = 5.0
DOCKER_QUERY_TIMEOUT = 10.0
# docker stop waits 10s for the container before killing it
DOCKER_STOP_TIMEOUT = 30.0


class Signal(Enum):
    """Kind of termination signal."""

    GRACEFUL = signal.SIGTERM
    FORCEFUL = signal.SIGKILL


class PortLister(Protocol):
    def owner(self, port: int) -> int | None: ...

    def invalidate(self) -> None: ...


class ProcessDescriber(Protocol):
    def describe(self, pid: int) -> str: ...


class ContainerLocator(Protocol):
    def find_container(self, pid: int) -> str | None: ...

    def container_name(self, container_id: str) -> str: ...


class ContainerRuntime(Protocol):
    def stop(self, container_id: str) -> None: ...

    def remove_force(self, container_id: str) -> None: ...


class Signaller(Protocol):
    def send(self, pid: int, kind: Signal) -> None: ...

    def is_alive(self, pid: int) -> bool: ...


class PsutilPortLister:
    """
    Find listening TCP sockets with psutil.

    The whole listener table is read once and reused for ``max_age`` seconds,
    so scanning a large port range costs a single enumeration per pass.
    An unreadable table fails the whole scan with ScanError rather than
    reporting every port as free.
    """

    def __init__(self, max_age: float = 1.0) -> None:
        self._max_age = max_age
        self._lock = threading.Lock()
        self._table: dict[int, int] = {}
        self._taken_at: float | None = None

    def owner(self, port: int) -> int | None:
        return self._listeners().get(port)

    def invalidate(self) -> None:
        """Force the next lookup to read a fresh table."""
        with self._lock:
            self._taken_at = None

    def _listeners(self) -> dict[int, int]:
        with self._lock:
            now = time.monotonic()
            if self._taken_at is None or now - self._taken_at > self._max_age:
                self._table = self._read_table()
                self._taken_at = now
            return self._table

    def _read_table(self) -> dict[int, int]:
        try:
            connections = psutil.net_connections(kind="tcp")
        except psutil.AccessDenied as e:
            raise ScanError(f"Listing TCP sockets requires more privileges: {e}") from e
        except (psutil.Error, OSError) as e:
            raise ScanError(f"Failed to list TCP sockets: {e}") from e

        table: dict[int, int] = {}
        for conn in connections:
            if conn.status != psutil.CONN_LISTEN or not conn.pid or not conn.laddr:
                continue
            # IPv4 and IPv6 sockets on the same port normally share one owner
            table.setdefault(conn.laddr.port, conn.pid)
        return table


class LsofPortLister:
    """Find the owner of a listening port with ``lsof``."""

    def invalidate(self) -> None:
        # Every lookup runs lsof afresh
        pass

    def owner(self, port: int) -> int | None:
        try:
            result = subprocess.run(
                ["lsof", "-ti", f":{port}", "-sTCP:LISTEN"],
                capture_output=True,
                text=True,
                timeout=LSOF_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise LookupFailure(f"Failed to execute lsof for port {port}: {e}") from e

        output = result.stdout.strip()
        if result.returncode != 0 or not output:
            # lsof exits with 1 when nothing matches
            return None

        first = output.splitlines()[0].strip()
        try:
            return int(first)
        except ValueError:
            raise LookupFailure(f"Failed to parse PID {first!r} for port {port}") from None


class PsutilProcessDescriber:
    """Describe a process by its executable path, falling back to its name."""

    def describe(self, pid: int) -> str:
        try:
            proc = psutil.Process(pid)
        except psutil.Error:
            return UNKNOWN_COMMAND

        try:
            exe = proc.exe()
            if exe:
                return exe
        except (psutil.AccessDenied, psutil.ZombieProcess):
            pass
        except psutil.Error:
            return UNKNOWN_COMMAND

        try:
            return proc.name() or UNKNOWN_COMMAND
        except psutil.Error:
            return UNKNOWN_COMMAND


class PsutilSignaller:
    """Deliver termination signals and probe liveness through psutil."""

    def send(self, pid: int, kind: Signal) -> None:
        try:
            psutil.Process(pid).send_signal(kind.value)
        except ValueError as e:
            # psutil rejects negative pids before touching the OS
            raise SignalError(pid, f"Invalid PID: {pid}") from e
        except psutil.NoSuchProcess as e:
            raise ProcessNotFoundError(pid, f"No such process: {pid}") from e
        except psutil.AccessDenied as e:
            raise SignalError(pid, f"Permission denied sending {kind.value.name}") from e
        except OSError as e:
            raise SignalError(pid, f"Failed to send {kind.value.name}: {e}") from e

    def is_alive(self, pid: int) -> bool:
        try:
            proc = psutil.Process(pid)
            return proc.status() != psutil.STATUS_ZOMBIE
        except (psutil.NoSuchProcess, ValueError):
            return False
        except psutil.AccessDenied:
            # Exists, but belongs to someone else
            return True


class DockerCli:
    """Container locator and runtime backed by the ``docker`` command line."""

    def __init__(self, executable: str = "docker") -> None:
        self._executable = executable

    def find_container(self, pid: int) -> str | None:
        """Return the id of the running container whose process list holds pid."""
        result = self._run(["ps", "--format", "{{.ID}}"], DOCKER_QUERY_TIMEOUT)
        if result.returncode != 0:
            return None

        for line in result.stdout.splitlines():
            container_id = line.strip()
            if container_id and self._container_has_pid(container_id, pid):
                return container_id
        return None

    def container_name(self, container_id: str) -> str:
        result = self._run(
            ["inspect", "--format", "{{.Name}}", container_id], DOCKER_QUERY_TIMEOUT
        )
        if result.returncode != 0:
            return container_id
        return result.stdout.strip().lstrip("/") or container_id

    def stop(self, container_id: str) -> None:
        result = self._run(["stop", container_id], DOCKER_STOP_TIMEOUT)
        if result.returncode != 0:
            raise ContainerError(
                container_id,
                f"Failed to stop Docker container {container_id}: {result.stderr.strip()}",
            )

    def remove_force(self, container_id: str) -> None:
        result = self._run(["rm", "-f", container_id], DOCKER_STOP_TIMEOUT)
        if result.returncode != 0:
            raise ContainerError(
                container_id,
                f"Failed to remove Docker container {container_id}: {result.stderr.strip()}",
            )

    def _container_has_pid(self, container_id: str, pid: int) -> bool:
        result = self._run(["top", container_id], DOCKER_QUERY_TIMEOUT)
        if result.returncode != 0:
            return False

        # Skip the "UID PID PPID ..." header
        for line in result.stdout.splitlines()[1:]:
            parts = line.split()
            if len(parts) < 2:
                continue
            try:
                if int(parts[1]) == pid:
                    return True
            except ValueError:
                continue
        return False

    def _run(self, args: list[str], timeout: float) -> subprocess.CompletedProcess:
        command = [self._executable, *args]
        logger.debug("Running %s", " ".join(command))
        try:
            return subprocess.run(command, capture_output=True, text=True, timeout=timeout)
        except (OSError, subprocess.TimeoutExpired) as e:
            target = args[-1] if len(args) > 1 else self._executable
            raise ContainerError(target, f"Failed to execute docker {args[0]}: {e}") from e
