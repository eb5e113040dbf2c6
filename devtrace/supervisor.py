"""
Process Supervisor - launches the dev server and the log viewer.

Children run in their own session so they keep running after devtrace exits.
The supervisor forwards their output into the unified log and reports exits,
but it never restarts or terminates them.

Children are started with Popen; an asyncio subprocess transport kills a
still-running child when it is closed.
"""
import asyncio
import os
import subprocess
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import IO, Callable, Dict, List, Optional

from rich.console import Console
from rich.markup import escape

from .errors import ProcessSpawnError
from .logging_config import get_logger
from .unified_log import LogSource, UnifiedLogger

logger = get_logger("supervisor")
console = Console()

# stderr lines containing one of these are echoed to the console
SEVERITY_MARKERS = ("FATAL", "Error:")


@dataclass
class ManagedProcess:
    label: str
    command: str
    cwd: Optional[str] = None
    process: Optional[subprocess.Popen] = field(default=None, repr=False)
    exit_code: Optional[int] = None
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())
    _readers: List[threading.Thread] = field(default_factory=list, repr=False)
    _watcher: Optional["asyncio.Task[None]"] = field(default=None, repr=False)

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def running(self) -> bool:
        return self.process is not None and self.exit_code is None

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "command": self.command,
            "cwd": self.cwd,
            "pid": self.pid,
            "exit_code": self.exit_code,
            "running": self.running,
            "started_at": self.started_at,
        }


def is_severe(line: str) -> bool:
    return any(marker in line for marker in SEVERITY_MARKERS)


class ProcessSupervisor:
    """Spawns shell commands and pipes their output into the unified log."""

    def __init__(self, unified_log: UnifiedLogger):
        self.unified_log = unified_log
        self.processes: Dict[str, ManagedProcess] = {}
        self._exit_callbacks: List[Callable] = []

    def add_exit_callback(self, callback: Callable):
        self._exit_callbacks.append(callback)

    async def _notify_exit(self, managed: ManagedProcess):
        for callback in self._exit_callbacks:
            try:
                if asyncio.iscoroutinefunction(callback):
                    await callback(managed)
                else:
                    callback(managed)
            except Exception as e:
                logger.error(f"Exit callback error: {e}")

    async def spawn(
        self,
        command: str,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[str] = None,
        label: str = "server",
        console_tag: str = "SERVER ERROR",
    ) -> ManagedProcess:
        """Start ``command`` through the shell, detached from our process group."""
        managed = ManagedProcess(label=label, command=command, cwd=str(cwd) if cwd else None)

        try:
            process = subprocess.Popen(
                command,
                shell=True,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=managed.cwd,
                env=env if env is not None else os.environ.copy(),
                start_new_session=True,
            )
        except OSError as e:
            raise ProcessSpawnError(label, command, str(e)) from e

        managed.process = process
        self.processes[label] = managed
        logger.info_with("Spawned process", label=label, pid=process.pid, command=command)

        managed._readers = [
            self._start_reader(process.stdout, managed, is_stderr=False, console_tag=console_tag),
            self._start_reader(process.stderr, managed, is_stderr=True, console_tag=console_tag),
        ]
        managed._watcher = asyncio.create_task(self._watch_exit(managed, self._start_waiter(managed)))
        return managed

    def _start_reader(self, stream: IO[bytes], managed: ManagedProcess, is_stderr: bool, console_tag: str):
        thread = threading.Thread(
            target=self._forward,
            args=(stream, managed, is_stderr, console_tag),
            name=f"devtrace-{managed.label}-{'stderr' if is_stderr else 'stdout'}",
            daemon=True,
        )
        thread.start()
        return thread

    def _forward(self, stream: IO[bytes], managed: ManagedProcess, is_stderr: bool, console_tag: str):
        for raw in iter(stream.readline, b""):
            line = raw.decode("utf-8", errors="replace").rstrip()
            if not line.strip():
                continue

            if is_stderr:
                self.unified_log.log(LogSource.SERVER, f"ERROR: {line}")
                if is_severe(line):
                    console.print(f"[red]{escape(f'[{console_tag}]')}[/red]", escape(line))
            else:
                self.unified_log.log(LogSource.SERVER, line)
        stream.close()

    def _start_waiter(self, managed: ManagedProcess) -> "asyncio.Future[int]":
        # Waits on a daemon thread: a running child must never block interpreter shutdown
        loop = asyncio.get_running_loop()
        exited = loop.create_future()

        def resolve(code: int):
            if not exited.done():
                exited.set_result(code)

        def wait():
            code = managed.process.wait()
            # Let the readers flush whatever the process wrote before it died
            for reader in managed._readers:
                reader.join()
            try:
                loop.call_soon_threadsafe(resolve, code)
            except RuntimeError:
                # Event loop already closed; nobody is left to report to
                pass

        threading.Thread(target=wait, name=f"devtrace-{managed.label}-wait", daemon=True).start()
        return exited

    async def _watch_exit(self, managed: ManagedProcess, exited: "asyncio.Future[int]"):
        code = await exited
        managed.exit_code = code

        self.unified_log.log(LogSource.SERVER, f"{managed.label} process exited with code {code}")
        console.print(f"[red]{escape(managed.label)} process exited with code {code}[/red]")
        logger.warning_with("Process exited", label=managed.label, pid=managed.pid, exit_code=code)
        await self._notify_exit(managed)

    def get_process(self, label: str) -> Optional[ManagedProcess]:
        return self.processes.get(label)

    async def wait_closed(self):
        """Wait until every spawned process has exited and been reported."""
        watchers = [managed._watcher for managed in self.processes.values() if managed._watcher]
        if watchers:
            await asyncio.gather(*watchers, return_exceptions=True)
