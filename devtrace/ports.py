"""
Pre-flight check that the ports a session needs are free.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import psutil
from rich.console import Console

from .errors import PortInUseError
from .logging_config import get_logger

logger = get_logger("ports")
console = Console()


@dataclass
class PortOwner:
    """A process listening on a port."""
    port: int
    pid: Optional[int]
    name: str = "unknown"

    def to_dict(self) -> dict:
        return {"port": self.port, "pid": self.pid, "name": self.name}


def find_listeners(port: int) -> List[PortOwner]:
    """Return the processes with a socket in LISTEN state on ``port``.

    Raises psutil.AccessDenied / PermissionError when the OS refuses the query.
    """
    owners: Dict[Optional[int], PortOwner] = {}
    for conn in psutil.net_connections(kind="inet"):
        if conn.status != psutil.CONN_LISTEN or not conn.laddr:
            continue
        if conn.laddr.port != port:
            continue
        # IPv4 and IPv6 sockets of the same process collapse into one owner
        if conn.pid in owners:
            continue

        name = "unknown"
        if conn.pid:
            try:
                name = psutil.Process(conn.pid).name()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                pass
        owners[conn.pid] = PortOwner(port=port, pid=conn.pid, name=name)
    return list(owners.values())


def check_ports_available(ports: Iterable[int]) -> None:
    """Fail with PortInUseError if any of ``ports`` has a listener.

    Every port is checked before failing. A port whose listeners cannot be
    queried is treated as free.
    """
    occupied: Dict[int, List[PortOwner]] = {}

    for port in ports:
        port = int(port)
        console.print(f"[blue]🔍 Checking port {port}...[/blue]")
        try:
            owners = find_listeners(port)
        except (psutil.AccessDenied, PermissionError, OSError) as e:
            logger.debug_with("Could not query listeners, assuming port is free", port=port, error=str(e))
            continue

        if owners:
            occupied[port] = owners

    if not occupied:
        return

    for port, owners in occupied.items():
        names = ", ".join(owner.name for owner in owners)
        pids = " ".join(str(owner.pid) for owner in owners if owner.pid is not None)
        console.print(f"[red]❌ Port {port} is already in use by: {names}[/red]")
        if pids:
            console.print(f"[yellow]💡 To free up port {port}, run: kill {pids}[/yellow]")

    raise PortInUseError(occupied)
