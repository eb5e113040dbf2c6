"""
Operator diagnostics logging for devtrace.

This is separate from the unified session log (see unified_log.py): it carries
devtrace's own warnings and debug output, never the dev server's or browser's.

All loggers live under the ``devtrace`` namespace; ``setup_logging`` configures
that namespace only and leaves the root logger to the host application.

    DEVTRACE_LOG_LEVEL   level name, default WARNING
    DEVTRACE_LOG_JSON    "1" for one JSON object per line
    DEVTRACE_LOG_FILE    also write diagnostics to this file
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

NAMESPACE = "devtrace"


def component_of(name: str) -> str:
    """``devtrace.browser.provision`` -> ``browser.provision``"""
    prefix = NAMESPACE + "."
    return name[len(prefix):] if name.startswith(prefix) else name


def _fields_of(record: logging.LogRecord) -> Dict[str, Any]:
    return getattr(record, "fields", None) or {}


class PlainFormatter(logging.Formatter):
    """``[12:00:01] WARNING supervisor: Process exited label=server exit_code=1``"""

    def __init__(self):
        super().__init__("[%(asctime)s] %(levelname)s %(component)s: %(message)s", datefmt="%H:%M:%S")

    def formatMessage(self, record: logging.LogRecord) -> str:
        record.component = component_of(record.name)
        text = super().formatMessage(record)
        fields = _fields_of(record)
        if fields:
            text += " " + " ".join(f"{key}={value}" for key, value in fields.items())
        return text


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "component": component_of(record.name),
            "msg": record.getMessage(),
        }
        data.update(_fields_of(record))
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class StructuredLogger(logging.Logger):
    """Logger whose ``*_with`` methods attach key/value fields to the record."""

    def log_with(self, level: int, msg: str, **fields):
        if self.isEnabledFor(level):
            self._log(level, msg, (), extra={"fields": fields})

    def debug_with(self, msg: str, **fields):
        self.log_with(logging.DEBUG, msg, **fields)

    def info_with(self, msg: str, **fields):
        self.log_with(logging.INFO, msg, **fields)

    def warning_with(self, msg: str, **fields):
        self.log_with(logging.WARNING, msg, **fields)

    def error_with(self, msg: str, **fields):
        self.log_with(logging.ERROR, msg, **fields)


logging.setLoggerClass(StructuredLogger)


def setup_logging(
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    level = level or os.environ.get("DEVTRACE_LOG_LEVEL", "WARNING")
    if json_format is None:
        json_format = os.environ.get("DEVTRACE_LOG_JSON", "0") == "1"
    log_file = log_file or os.environ.get("DEVTRACE_LOG_FILE")

    namespace_logger = logging.getLogger(NAMESPACE)
    namespace_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    namespace_logger.propagate = False
    for handler in list(namespace_logger.handlers):
        namespace_logger.removeHandler(handler)
        handler.close()

    formatter = JSONFormatter() if json_format else PlainFormatter()

    # stderr keeps diagnostics out of the progress output on stdout
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    namespace_logger.addHandler(stream_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        namespace_logger.addHandler(file_handler)

    # httpx logs every readiness request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return namespace_logger


def get_logger(component: str) -> StructuredLogger:
    """Logger for ``component``, placed under the ``devtrace`` namespace."""
    if component != NAMESPACE and not component.startswith(NAMESPACE + "."):
        component = f"{NAMESPACE}.{component}"
    return logging.getLogger(component)
