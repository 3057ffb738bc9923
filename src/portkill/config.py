"""Monitor configuration for port-kill."""

from collections.abc import Iterable
from dataclasses import dataclass

from portkill.errors import ConfigurationError

# Seconds between two sampling passes
MONITORING_INTERVAL = 2.0

DEFAULT_START_PORT = 2000
DEFAULT_END_PORT = 6000
MAX_PORT = 65535


@dataclass(slots=True, frozen=True)
class MonitorConfiguration:
    """
    Immutable set of options the monitor runs with.

    Ports come either from an explicit list or from an inclusive range, never
    both. Use ``from_ports``, ``from_range`` or ``resolve`` rather than the
    constructor so the ports are validated.
    """

    ports: tuple[int, ...]
    port_range: tuple[int, int] | None = None
    docker_enabled: bool = False

    @property
    def poll_interval(self) -> float:
        return MONITORING_INTERVAL

    @classmethod
    def from_ports(
        cls, ports: Iterable[int], docker_enabled: bool = False
    ) -> "MonitorConfiguration":
        """Monitor exactly the given ports, in order, without duplicates."""
        unique = tuple(dict.fromkeys(ports))
        if not unique:
            raise ConfigurationError("At least one port must be specified")
        for port in unique:
            _check_port(port)
        return cls(ports=unique, port_range=None, docker_enabled=docker_enabled)

    @classmethod
    def from_range(
        cls, start: int, end: int, docker_enabled: bool = False
    ) -> "MonitorConfiguration":
        """Monitor every port from start to end, both inclusive."""
        if start > end:
            raise ConfigurationError("Start port cannot be greater than end port")
        _check_port(start)
        _check_port(end)
        return cls(
            ports=tuple(range(start, end + 1)),
            port_range=(start, end),
            docker_enabled=docker_enabled,
        )

    @classmethod
    def resolve(
        cls,
        start_port: int = DEFAULT_START_PORT,
        end_port: int = DEFAULT_END_PORT,
        ports: Iterable[int] | None = None,
        docker_enabled: bool = False,
    ) -> "MonitorConfiguration":
        """Explicit ports win over the range, which is then ignored."""
        if ports is not None:
            return cls.from_ports(ports, docker_enabled=docker_enabled)
        return cls.from_range(start_port, end_port, docker_enabled=docker_enabled)

    def describe(self) -> str:
        """Human readable description of the monitored ports."""
        if self.port_range is not None:
            start, end = self.port_range
            return f"port range: {start}-{end}"
        return "specific ports: " + ", ".join(str(port) for port in self.ports)


def _check_port(port: int) -> None:
    if port == 0:
        raise ConfigurationError("Port 0 is not valid")
    if port < 0 or port > MAX_PORT:
        raise ConfigurationError(f"Port {port} is out of range (1-{MAX_PORT})")


def parse_port_list(value: str) -> list[int]:
    """Parse a comma-separated port list such as ``"3000,8000,8080"``."""
    ports = []
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        try:
            ports.append(int(item))
        except ValueError:
            raise ConfigurationError(f"Invalid port: {item!r}") from None
    return ports
