"""
Exceptions raised during a devtrace session startup.

Anything deriving from DevtraceError is fatal to startup; the CLI reports it
and exits non-zero. Failures inside reactive callbacks are logged instead.
"""
from typing import List, Optional


class DevtraceError(Exception):
    """Base exception for fatal devtrace errors"""
    pass


class PortInUseError(DevtraceError):
    """One or more required ports already have a listener"""
    def __init__(self, occupied: dict):
        # occupied: port -> list of PortOwner
        self.occupied = occupied
        ports = ", ".join(str(port) for port in occupied)
        super().__init__(f"Port {ports} is already in use. Please free the port and try again.")

    @property
    def pids(self) -> List[int]:
        pids = []
        for owners in self.occupied.values():
            for owner in owners:
                if owner.pid is not None and owner.pid not in pids:
                    pids.append(owner.pid)
        return pids


class ProcessSpawnError(DevtraceError):
    """A managed process could not be started"""
    def __init__(self, label: str, command: str, reason: str):
        self.label = label
        self.command = command
        self.reason = reason
        super().__init__(f"Failed to start {label} ({command}): {reason}")


class ReportingBundleMissingError(DevtraceError):
    """The log viewer package is not present on disk"""
    pass


class BrowserProvisionError(DevtraceError):
    """Installing the bundled browser failed or timed out"""
    pass


class BrowserLaunchError(DevtraceError):
    """Every browser launch strategy failed"""
    def __init__(self, message: str, attempts: Optional[list] = None):
        self.attempts = attempts or []
        super().__init__(message)


class SessionInterrupted(DevtraceError):
    """The operator interrupted devtrace before startup finished"""
    pass
