"""
Unified session log.

Every component writes here: dev server and viewer output tagged SERVER,
browser activity tagged BROWSER. The file is the session's only durable record
and is read by the log viewer, so the line format must stay stable:

    [2024-05-01T12:00:00.123Z] [BROWSER] [CONSOLE LOG] hello
"""
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Union


class LogSource(Enum):
    SERVER = "server"
    BROWSER = "browser"


def iso_timestamp(now: Optional[datetime] = None) -> str:
    """UTC timestamp with millisecond precision and a Z suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_entry(source: Union[LogSource, str], message: str, timestamp: Optional[str] = None) -> str:
    source = LogSource(source) if isinstance(source, str) else source
    return f"[{timestamp or iso_timestamp()}] [{source.value.upper()}] {message}\n"


class UnifiedLogger:
    """Append-only, timestamped, source-tagged log file."""

    def __init__(self, log_file: Union[str, Path]):
        self.log_file = Path(log_file)
        self._lock = threading.Lock()

        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        # Each session starts with an empty log
        self.log_file.write_text("", encoding="utf-8")

    def log(self, source: Union[LogSource, str], message: str):
        entry = format_entry(source, message)
        with self._lock:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(entry)

    def server(self, message: str):
        self.log(LogSource.SERVER, message)

    def browser(self, message: str):
        self.log(LogSource.BROWSER, message)
