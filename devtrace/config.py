"""
Session configuration.

Values come from CLI options, then DEVTRACE_* environment variables, then the
defaults below.
"""
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from . import __version__

DEFAULT_PORT = 3000
DEFAULT_REPORTING_PORT = 3684
DEFAULT_SERVER_COMMAND = "npm run dev"

DATA_DIR = Path.home() / ".devtrace"
PID_FILE = Path(tempfile.gettempdir()) / "devtrace.pid"


def default_log_file() -> Path:
    return Path(tempfile.gettempdir()) / "devtrace" / "devtrace.log"


def default_profile_dir(cwd: Optional[Path] = None) -> Path:
    project = (cwd or Path.cwd()).name or "default"
    return DATA_DIR / "profiles" / project


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SessionConfig:
    """Everything a single devtrace session needs to know."""
    port: int = DEFAULT_PORT
    reporting_port: int = DEFAULT_REPORTING_PORT
    server_command: str = DEFAULT_SERVER_COMMAND
    profile_dir: Path = field(default_factory=default_profile_dir)
    log_file: Path = field(default_factory=default_log_file)
    headless: bool = False
    pid_file: Path = PID_FILE
    screenshot_dir: Optional[Path] = None
    public_dir: Optional[Path] = None
    version: str = __version__

    def __post_init__(self):
        self.port = int(self.port)
        self.reporting_port = int(self.reporting_port)
        self.profile_dir = Path(self.profile_dir).expanduser()
        self.log_file = Path(self.log_file).expanduser().resolve()
        self.pid_file = Path(self.pid_file)
        if self.screenshot_dir is None:
            self.screenshot_dir = self.log_file.parent / "screenshots"
        if self.public_dir is None:
            self.public_dir = self.log_file.parent / "public" / "screenshots"
        self.screenshot_dir = Path(self.screenshot_dir)
        self.public_dir = Path(self.public_dir)

    @property
    def app_url(self) -> str:
        return f"http://localhost:{self.port}"

    @property
    def reporting_url(self) -> str:
        return f"http://localhost:{self.reporting_port}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "port": self.port,
            "reporting_port": self.reporting_port,
            "server_command": self.server_command,
            "profile_dir": str(self.profile_dir),
            "log_file": str(self.log_file),
            "headless": self.headless,
            "pid_file": str(self.pid_file),
            "screenshot_dir": str(self.screenshot_dir),
            "public_dir": str(self.public_dir),
            "version": self.version,
        }

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, **overrides) -> "SessionConfig":
        """Build a config from DEVTRACE_* variables; non-None overrides win."""
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        if environ.get("DEVTRACE_PORT"):
            values["port"] = int(environ["DEVTRACE_PORT"])
        if environ.get("DEVTRACE_REPORTING_PORT"):
            values["reporting_port"] = int(environ["DEVTRACE_REPORTING_PORT"])
        if environ.get("DEVTRACE_SERVER_COMMAND"):
            values["server_command"] = environ["DEVTRACE_SERVER_COMMAND"]
        if environ.get("DEVTRACE_PROFILE_DIR"):
            values["profile_dir"] = Path(environ["DEVTRACE_PROFILE_DIR"])
        if environ.get("DEVTRACE_LOG_FILE_PATH"):
            values["log_file"] = Path(environ["DEVTRACE_LOG_FILE_PATH"])
        if environ.get("DEVTRACE_HEADLESS"):
            values["headless"] = _env_bool(environ["DEVTRACE_HEADLESS"])

        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
