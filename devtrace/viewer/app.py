"""
FastAPI app for the log viewer.
"""
import re
from pathlib import Path
from typing import List, Optional

import aiofiles
from fastapi import FastAPI, Query, Request
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from .. import __version__

TEMPLATES_DIR = Path(__file__).parent / "templates"

ENTRY_PATTERN = re.compile(r"^\[(?P<timestamp>[^\]]+)\] \[(?P<source>SERVER|BROWSER)\] (?P<message>.*)$")
SCREENSHOT_PREFIX = "[SCREENSHOT] "


class LogEntryModel(BaseModel):
    timestamp: str
    source: str
    message: str
    screenshot: Optional[str] = None


class LogsResponse(BaseModel):
    log_file: str
    total: int
    entries: List[LogEntryModel]


def parse_log(text: str) -> List[LogEntryModel]:
    """Split unified-log text into entries.

    Lines that don't start with a timestamp belong to the previous entry
    (stack traces, multi-line server output).
    """
    entries: List[LogEntryModel] = []
    for line in text.splitlines():
        match = ENTRY_PATTERN.match(line)
        if match:
            message = match.group("message")
            screenshot = None
            if message.startswith(SCREENSHOT_PREFIX):
                url = message[len(SCREENSHOT_PREFIX):].strip()
                screenshot = "/screenshots/" + url.rsplit("/", 1)[-1]
            entries.append(LogEntryModel(
                timestamp=match.group("timestamp"),
                source=match.group("source").lower(),
                message=message,
                screenshot=screenshot,
            ))
        elif entries and line:
            entries[-1].message += "\n" + line
    return entries


async def read_entries(log_file: Path) -> List[LogEntryModel]:
    if not log_file.exists():
        return []
    async with aiofiles.open(log_file, "r", encoding="utf-8", errors="replace") as f:
        text = await f.read()
    return parse_log(text)


def create_app(log_file: Path, screenshot_dir: Path, version: str = __version__) -> FastAPI:
    log_file = Path(log_file)
    screenshot_dir = Path(screenshot_dir)
    screenshot_dir.mkdir(parents=True, exist_ok=True)

    app = FastAPI(title="devtrace log viewer", version=version)
    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

    app.mount("/screenshots", StaticFiles(directory=str(screenshot_dir)), name="screenshots")

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "version": version,
            "log_file": str(log_file),
            "log_file_exists": log_file.exists(),
        }

    @app.api_route("/", methods=["GET", "HEAD"], response_class=HTMLResponse)
    @app.get("/logs", response_class=HTMLResponse)
    async def logs_page(request: Request):
        entries = await read_entries(log_file)
        return templates.TemplateResponse(request, "logs.html", {
            "entries": entries,
            "log_file": str(log_file),
            "version": version,
        })

    @app.get("/api/logs", response_model=LogsResponse)
    async def get_logs(
        source: Optional[str] = Query(None, pattern="^(server|browser)$"),
        limit: int = Query(500, ge=1, le=10000),
    ):
        entries = await read_entries(log_file)
        if source:
            entries = [entry for entry in entries if entry.source == source]
        return LogsResponse(log_file=str(log_file), total=len(entries), entries=entries[-limit:])

    return app
