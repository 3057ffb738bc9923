"""Exception hierarchy for port-kill."""


class PortKillError(Exception):
    """Base class for all port-kill errors."""


class ConfigurationError(PortKillError):
    """Invalid monitor configuration. Raised before the monitor starts."""


class LookupFailure(PortKillError):
    """A single per-port probe failed or returned unparseable data."""


class ScanError(PortKillError):
    """The snapshot builder could not run at all."""


class TerminationError(PortKillError):
    """Terminating a process or container failed."""

    def __init__(self, target: int | str, reason: str) -> None:
        super().__init__(reason)
        self.target = target
        self.reason = reason


class SignalError(TerminationError):
    """A signal could not be delivered to a process."""


class ProcessNotFoundError(SignalError):
    """The target process no longer exists."""


class ContainerError(TerminationError):
    """A Docker command failed."""


class BatchTerminationError(TerminationError):
    """One or more targets of a kill-all request could not be terminated."""

    def __init__(self, failures: list) -> None:
        detail = "; ".join(str(failure) for failure in failures)
        super().__init__("all", f"Some processes failed to kill: {detail}")
        self.failures = failures
