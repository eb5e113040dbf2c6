"""
Screenshot pipeline.

Captures the viewport, archives it next to the session log, and copies it into
the viewer's static directory so it can be linked from the unified log.
"""
import shutil
from pathlib import Path
from typing import Any, List, Optional, Union

from rich.console import Console
from rich.markup import escape

from ..logging_config import get_logger
from ..unified_log import iso_timestamp
from .models import ScreenshotArtifact, ScreenshotLabel

logger = get_logger("browser.screenshots")
console = Console()


def safe_timestamp(timestamp: Optional[str] = None) -> str:
    """ISO timestamp with ':' and '.' replaced so it can be a filename."""
    timestamp = timestamp or iso_timestamp()
    return timestamp.replace(":", "-").replace(".", "-")


def screenshot_filename(label: Union[ScreenshotLabel, str], timestamp: Optional[str] = None) -> str:
    label = label.value if isinstance(label, ScreenshotLabel) else label
    return f"{safe_timestamp(timestamp)}-{label}.png"


class ScreenshotPipeline:
    """Takes screenshots of monitored pages and publishes them by URL."""

    def __init__(self, screenshot_dir: Union[str, Path], public_dir: Union[str, Path], reporting_port: int):
        self.screenshot_dir = Path(screenshot_dir)
        self.public_dir = Path(public_dir)
        self.reporting_port = reporting_port
        self.artifacts: List[ScreenshotArtifact] = []

        self.screenshot_dir.mkdir(parents=True, exist_ok=True)
        self.public_dir.mkdir(parents=True, exist_ok=True)

    def public_url(self, filename: str) -> str:
        return f"http://localhost:{self.reporting_port}/screenshots/{filename}"

    async def capture(self, page: Any, label: Union[ScreenshotLabel, str]) -> Optional[str]:
        """Screenshot ``page`` and return its public URL, or None on failure."""
        label = label.value if isinstance(label, ScreenshotLabel) else label
        timestamp = iso_timestamp()
        filename = screenshot_filename(label, timestamp)
        local_path = self.screenshot_dir / filename
        public_path = self.public_dir / filename

        try:
            await page.screenshot(
                path=str(local_path),
                full_page=False,
                animations="disabled",
            )
            shutil.copyfile(local_path, public_path)
        except Exception as e:
            console.print("[red]\\[SCREENSHOT ERROR][/red]", escape(str(e)))
            logger.error_with("Screenshot failed", label=label, error=str(e))
            return None

        url = self.public_url(filename)
        self.artifacts.append(ScreenshotArtifact(
            timestamp=timestamp,
            label=label,
            filename=filename,
            local_path=str(local_path),
            public_path=str(public_path),
            url=url,
        ))
        return url

    def get_artifacts(self, label: Optional[str] = None) -> List[dict]:
        artifacts = self.artifacts
        if label:
            artifacts = [a for a in artifacts if a.label == label]
        return [a.to_dict() for a in artifacts]
