"""Assemble the adapters, snapshot builder, monitor and terminator."""

from dataclasses import dataclass, field
from queue import Queue

from portkill.config import MonitorConfiguration
from portkill.models import ProcessUpdate
from portkill.monitor import PortMonitor
from portkill.probes import (
    DockerCli,
    LsofPortLister,
    PortLister,
    PsutilPortLister,
    PsutilProcessDescriber,
    PsutilSignaller,
)
from portkill.snapshot import SnapshotBuilder
from portkill.terminator import Terminator

LISTERS = {
    "psutil": PsutilPortLister,
    "lsof": LsofPortLister,
}


@dataclass
class Engine:
    """Everything a presentation layer needs to drive port-kill."""

    config: MonitorConfiguration
    builder: SnapshotBuilder
    monitor: PortMonitor
    terminator: Terminator
    updates: Queue[ProcessUpdate] = field(default_factory=Queue)


def build_engine(config: MonitorConfiguration, lister: str = "psutil") -> Engine:
    """Create the default OS-backed engine for a configuration."""
    try:
        port_lister: PortLister = LISTERS[lister]()
    except KeyError:
        raise ValueError(f"Unknown port lister: {lister!r}") from None

    docker = DockerCli() if config.docker_enabled else None
    builder = SnapshotBuilder(
        config.ports,
        lister=port_lister,
        describer=PsutilProcessDescriber(),
        locator=docker,
    )
    updates: Queue[ProcessUpdate] = Queue()
    monitor = PortMonitor(builder, updates, poll_rate=config.poll_interval)
    terminator = Terminator(builder, PsutilSignaller(), locator=docker, runtime=docker)
    return Engine(
        config=config,
        builder=builder,
        monitor=monitor,
        terminator=terminator,
        updates=updates,
    )
