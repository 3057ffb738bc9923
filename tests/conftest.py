"""In-memory fakes for the port-kill adapters."""

from queue import Queue

import pytest

from portkill.config import MonitorConfiguration
from portkill.engine import Engine
from portkill.errors import (
    ContainerError,
    LookupFailure,
    ProcessNotFoundError,
    ScanError,
    SignalError,
)
from portkill.models import ProcessUpdate, Snapshot
from portkill.monitor import PortMonitor
from portkill.probes import Signal
from portkill.terminator import Terminator


class FakeLister:
    """
    Port lister backed by a dict.

    Ports in ``failing`` raise LookupFailure. While ``unreadable`` is set every
    lookup raises ScanError, as when the listener table is off limits.
    """

    def __init__(self, owners: dict[int, int] | None = None, failing: set[int] | None = None):
        self.owners = dict(owners or {})
        self.failing = set(failing or ())
        self.unreadable = False
        self.calls: list[int] = []
        self.invalidations = 0

    def owner(self, port: int) -> int | None:
        self.calls.append(port)
        if self.unreadable:
            raise ScanError("Listing TCP sockets requires more privileges")
        if port in self.failing:
            raise LookupFailure(f"lsof blew up on {port}")
        return self.owners.get(port)

    def invalidate(self) -> None:
        self.invalidations += 1


class FakeDescriber:
    def __init__(self, commands: dict[int, str] | None = None):
        self.commands = dict(commands or {})

    def describe(self, pid: int) -> str:
        return self.commands.get(pid, "unknown")


class FakeDocker:
    """Container locator and runtime in one, like DockerCli."""

    def __init__(
        self,
        containers: dict[int, str] | None = None,
        names: dict[str, str] | None = None,
        stop_fails: bool = False,
        remove_fails: bool = False,
        lookup_fails: bool = False,
    ):
        self.containers = dict(containers or {})
        self.names = dict(names or {})
        self.stop_fails = stop_fails
        self.remove_fails = remove_fails
        self.lookup_fails = lookup_fails
        self.find_calls: list[int] = []
        self.stopped: list[str] = []
        self.removed: list[str] = []

    def find_container(self, pid: int) -> str | None:
        self.find_calls.append(pid)
        if self.lookup_fails:
            raise ContainerError(pid, "docker not found")
        return self.containers.get(pid)

    def container_name(self, container_id: str) -> str:
        if container_id not in self.names:
            raise ContainerError(container_id, "inspect failed")
        return self.names[container_id]

    def stop(self, container_id: str) -> None:
        self.stopped.append(container_id)
        if self.stop_fails:
            raise ContainerError(container_id, f"Failed to stop {container_id}")

    def remove_force(self, container_id: str) -> None:
        self.removed.append(container_id)
        if self.remove_fails:
            raise ContainerError(container_id, f"Failed to remove {container_id}")


class FakeSignaller:
    """
    Signaller simulating a process table.

    ``alive`` holds running pids. ``stubborn`` pids ignore SIGTERM.
    ``protected`` pids reject every signal with a permission error.
    """

    def __init__(
        self,
        alive: set[int] | None = None,
        stubborn: set[int] | None = None,
        protected: set[int] | None = None,
    ):
        self.alive = set(alive or ())
        self.stubborn = set(stubborn or ())
        self.protected = set(protected or ())
        self.sent: list[tuple[int, Signal]] = []

    def send(self, pid: int, kind: Signal) -> None:
        if pid not in self.alive:
            raise ProcessNotFoundError(pid, f"No such process: {pid}")
        if pid in self.protected:
            raise SignalError(pid, "Permission denied")
        self.sent.append((pid, kind))
        if kind is Signal.FORCEFUL or pid not in self.stubborn:
            self.alive.discard(pid)

    def is_alive(self, pid: int) -> bool:
        return pid in self.alive


class ScriptedBuilder:
    """Snapshot builder returning queued results; exceptions are raised."""

    def __init__(self, results: list | None = None, ports: tuple[int, ...] = (4000,)):
        self.results = list(results or [])
        self.ports = ports
        self.calls = 0
        self.fresh: list[bool] = []

    def build(self, fresh: bool = False) -> Snapshot:
        self.calls += 1
        self.fresh.append(fresh)
        result = self.results.pop(0) if self.results else Snapshot.empty()
        if isinstance(result, Exception):
            raise result
        return result


class FakeTerminator:
    """Records kill requests. ``error`` is raised from terminate when set."""

    def __init__(self, fail: bool = False, error: Exception | None = None):
        self.fail = fail
        self.error = error
        self.terminated: list[int] = []
        self.all_calls = 0

    def terminate(self, pid: int) -> None:
        self.terminated.append(pid)
        if self.error is not None:
            raise self.error
        if self.fail:
            raise SignalError(pid, "Permission denied")

    def terminate_all(self) -> int:
        self.all_calls += 1
        return 0


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    delays: list[float] = []
    return delays.append, delays


@pytest.fixture
def make_terminator(no_sleep):
    sleep, _ = no_sleep

    def factory(builder=None, signaller=None, docker=None) -> Terminator:
        return Terminator(
            builder or ScriptedBuilder(),
            signaller or FakeSignaller(),
            locator=docker,
            runtime=docker,
            sleep=sleep,
        )

    return factory


@pytest.fixture
def fake_engine():
    """Engine wired to in-memory fakes, for presentation tests."""
    config = MonitorConfiguration.from_ports([3000, 8080])
    builder = ScriptedBuilder(ports=config.ports)
    updates: Queue[ProcessUpdate] = Queue()
    monitor = PortMonitor(builder, updates, poll_rate=60.0)
    yield Engine(
        config=config,
        builder=builder,
        monitor=monitor,
        terminator=FakeTerminator(),
        updates=updates,
    )
    monitor.stop()
