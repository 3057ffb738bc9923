"""Data models for port-kill."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

UNKNOWN_COMMAND = "unknown"


@dataclass(slots=True, frozen=True)
class ContainerRef:
    """Docker container enclosing a process. The name is None if its lookup failed."""

    id: str
    name: str | None = None


@dataclass(slots=True, frozen=True)
class ProcessDescriptor:
    """Immutable description of one process listening on a monitored port."""

    pid: int
    port: int  # binding key, 1 - 65535
    command: str  # binary name or path
    name: str  # basename of command
    container: ContainerRef | None = None

    @classmethod
    def create(
        cls,
        pid: int,
        port: int,
        command: str,
        container: ContainerRef | None = None,
    ) -> "ProcessDescriptor":
        """Build a descriptor, deriving the display name from the command."""
        return cls(
            pid=pid,
            port=port,
            command=command,
            name=display_name(command),
            container=container,
        )

    @property
    def container_id(self) -> str | None:
        return self.container.id if self.container else None

    @property
    def container_name(self) -> str | None:
        return self.container.name if self.container else None


def display_name(command: str) -> str:
    """Return the basename of a command path."""
    return command.rstrip("/").rsplit("/", 1)[-1] or UNKNOWN_COMMAND


@dataclass(frozen=True)
class Snapshot:
    """
    Port to process mapping observed in one sampling pass.

    Equality is structural: two snapshots are equal only when they hold the
    same ports and every descriptor field matches.
    """

    processes: Mapping[int, ProcessDescriptor] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Detach from the caller's dict so later mutation cannot leak in
        object.__setattr__(self, "processes", dict(self.processes))

    @classmethod
    def empty(cls) -> "Snapshot":
        return cls()

    @property
    def count(self) -> int:
        return len(self.processes)

    def __len__(self) -> int:
        return len(self.processes)

    def __iter__(self) -> Iterator[ProcessDescriptor]:
        return iter(self.descriptors())

    def __contains__(self, port: object) -> bool:
        return port in self.processes

    def get(self, port: int) -> ProcessDescriptor | None:
        return self.processes.get(port)

    def ports(self) -> list[int]:
        return sorted(self.processes)

    def descriptors(self) -> list[ProcessDescriptor]:
        """Descriptors ordered by port."""
        return [self.processes[port] for port in self.ports()]


@dataclass(slots=True, frozen=True)
class ProcessUpdate:
    """Change event published whenever the reconciled snapshot changes."""

    snapshot: Snapshot
    count: int

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "ProcessUpdate":
        return cls(snapshot=snapshot, count=snapshot.count)


@dataclass(slots=True, frozen=True)
class StatusSummary:
    """Short label and tooltip derived from a process count."""

    text: str
    tooltip: str

    @classmethod
    def from_count(cls, count: int) -> "StatusSummary":
        if count == 0:
            tooltip = "No development processes running"
        else:
            tooltip = f"{count} development process(es) running"
        return cls(text=str(count), tooltip=tooltip)
