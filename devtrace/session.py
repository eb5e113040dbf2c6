"""
Session Controller - runs the devtrace startup sequence.

    ports free? -> pid file -> SIGINT handler -> dev server -> log viewer
    -> wait for both -> browser monitoring

Once the browser monitor is ready the controller's work is done: the
supervisor's exit observers and the monitor's listeners carry the session.
Child processes and the browser are launched detached and are never stopped
by devtrace itself.
"""
import asyncio
import os
import shlex
import signal
import sys
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console

from .browser.monitor import BrowserMonitor
from .browser.screenshots import ScreenshotPipeline
from .config import SessionConfig
from .errors import ReportingBundleMissingError, SessionInterrupted
from .logging_config import get_logger
from .ports import check_ports_available
from .readiness import ReadinessResult, wait_for_ready
from .supervisor import ManagedProcess, ProcessSupervisor
from .unified_log import UnifiedLogger

logger = get_logger("session")
console = Console()

PACKAGE_DIR = Path(__file__).parent
VIEWER_DIR = PACKAGE_DIR / "viewer"


def viewer_command() -> str:
    return shlex.join([sys.executable, "-m", "devtrace.viewer"])


class SessionController:
    """Owns one devtrace session: its processes, browser and log."""

    def __init__(self, config: SessionConfig, install_signal_handlers: bool = True):
        self.config = config
        self.install_signal_handlers = install_signal_handlers
        self.unified_log = UnifiedLogger(config.log_file)
        self.supervisor = ProcessSupervisor(self.unified_log)
        self.screenshots = ScreenshotPipeline(
            config.screenshot_dir,
            config.public_dir,
            config.reporting_port,
        )
        self.monitor = BrowserMonitor(
            self.unified_log,
            self.screenshots,
            port=config.port,
            reporting_port=config.reporting_port,
            profile_dir=config.profile_dir,
            headless=config.headless,
        )

        self.server_process: Optional[ManagedProcess] = None
        self.reporting_process: Optional[ManagedProcess] = None
        self.readiness: List[ReadinessResult] = []
        self._interrupted: Optional[asyncio.Event] = None
        self._startup_task: Optional["asyncio.Task[None]"] = None

    # ==================== Startup ====================

    async def start(self):
        """Run the full startup sequence. Fatal errors propagate.

        An interrupt while this runs cancels whatever step is in flight and
        raises SessionInterrupted; nothing after that step is started.
        """
        config = self.config
        console.print("[blue]🚀 Starting development environment...[/blue]")
        console.print(f"[bold green]📊 Consolidated Log: {config.log_file}[/bold green]")
        console.print("[dim]💡 Give your AI assistant this log file path for debugging![/dim]\n")

        check_ports_available([config.port, config.reporting_port])

        self._write_pid_file()
        self._setup_interrupt_handler()

        self._startup_task = asyncio.current_task()
        try:
            await self._start_services()
        except asyncio.CancelledError:
            if not self._interrupted.is_set():
                raise
            # Consume our own cancellation so the caller can keep awaiting
            if hasattr(self._startup_task, "uncancel"):
                self._startup_task.uncancel()
            await self.monitor.aclose()
            raise SessionInterrupted("Interrupted during startup") from None
        finally:
            self._startup_task = None

    async def _start_services(self):
        self.server_process = await self._start_server()
        self._check_interrupted()
        self.reporting_process = await self._start_viewer()
        self._check_interrupted()

        self._print_quick_access()

        self.readiness = await self._wait_for_services()
        self._check_interrupted()

        await self.monitor.start()

        self._print_ready()

    def _write_pid_file(self):
        self.config.pid_file.parent.mkdir(parents=True, exist_ok=True)
        self.config.pid_file.write_text(str(os.getpid()))

    async def _start_server(self) -> ManagedProcess:
        console.print(f"[blue]🔧 Starting server: {self.config.server_command}[/blue]")
        return await self.supervisor.spawn(
            self.config.server_command,
            label="server",
            console_tag="SERVER ERROR",
        )

    def _viewer_env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env.update({
            "PORT": str(self.config.reporting_port),
            "LOG_FILE_PATH": str(self.config.log_file),
            "SCREENSHOT_DIR": str(self.config.public_dir),
            "DEVTRACE_VERSION": self.config.version,
            "PYTHONUNBUFFERED": "1",
        })
        return env

    async def _start_viewer(self) -> ManagedProcess:
        console.print(f"[blue]📊 Starting log viewer on port {self.config.reporting_port}...[/blue]")
        console.print(f"[dim]Log viewer path: {VIEWER_DIR}[/dim]")

        if not (VIEWER_DIR / "__main__.py").exists():
            raise ReportingBundleMissingError(f"Log viewer not found at {VIEWER_DIR}")

        return await self.supervisor.spawn(
            viewer_command(),
            env=self._viewer_env(),
            cwd=str(PACKAGE_DIR.parent),
            label="log viewer",
            console_tag="LOG VIEWER ERROR",
        )

    async def _wait_for_services(self) -> List[ReadinessResult]:
        # Both polls run together; results come back dev server first
        results = await asyncio.gather(
            wait_for_ready(self.config.app_url, label="Server"),
            wait_for_ready(self.config.reporting_url, label="Log viewer"),
        )
        for result in results:
            if not result.ready:
                logger.warning_with("Continuing without readiness", url=result.url, attempts=result.attempts)
        return list(results)

    # ==================== Console output ====================

    def _print_quick_access(self):
        config = self.config
        console.print("\n[green]🔗 Quick Access URLs:[/green]")
        console.print(f"[blue]🌐 Your App: {config.app_url}[/blue]")
        console.print(f"[blue]📊 Log Viewer: {config.reporting_url}/logs[/blue]")
        console.print(f"[blue]🧾 Log API: {config.reporting_url}/api/logs[/blue]")

    def _print_ready(self):
        config = self.config
        console.print("\n[green]✅ Development environment ready![/green]")
        console.print(f"[blue]📊 Logs: {config.log_file}[/blue]")
        console.print(f"[blue]🌐 Your App: {config.app_url}[/blue]")
        console.print(f"[magenta]📸 Visual Timeline: {config.reporting_url}/logs[/magenta]")
        console.print("[yellow]\n🎯 Ready for AI debugging! All processes are running in the background.[/yellow]")
        console.print(
            f"[dim]\n💡 To stop servers later: lsof -ti:{config.port} | xargs kill -9 && "
            f"lsof -ti:{config.reporting_port} | xargs kill -9[/dim]"
        )

    # ==================== Interrupt ====================

    def _setup_interrupt_handler(self):
        self._interrupted = asyncio.Event()
        if not self.install_signal_handlers:
            return

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, self.interrupt)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no add_signal_handler
            signal.signal(signal.SIGINT, lambda signum, frame: loop.call_soon_threadsafe(self.interrupt))

    def interrupt(self):
        """Stop devtrace itself. Child processes and the browser keep running."""
        console.print("[yellow]\n🛑 Received interrupt signal. Processes will continue running in background.[/yellow]")
        console.print(
            f"[dim]💡 Use \"lsof -ti:{self.config.port},{self.config.reporting_port} | xargs kill\" "
            "to stop all processes.[/dim]"
        )
        if self._interrupted is None:
            self._interrupted = asyncio.Event()
        self._interrupted.set()
        task = self._startup_task
        # From inside the startup task itself the next checkpoint stops it
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _check_interrupted(self):
        if self._interrupted is not None and self._interrupted.is_set():
            raise asyncio.CancelledError()

    async def wait_until_interrupted(self):
        if self._interrupted is None:
            self._interrupted = asyncio.Event()
        try:
            await self._interrupted.wait()
        finally:
            await self.monitor.aclose()

    def to_dict(self) -> dict:
        return {
            "config": self.config.to_dict(),
            "monitor_state": self.monitor.state.value,
            "processes": [p.to_dict() for p in (self.server_process, self.reporting_process) if p],
            "readiness": [r.to_dict() for r in self.readiness],
            "pages": self.monitor.get_pages(),
            "screenshots": self.screenshots.get_artifacts(),
        }


async def start_session(config: SessionConfig) -> SessionController:
    controller = SessionController(config)
    await controller.start()
    return controller
