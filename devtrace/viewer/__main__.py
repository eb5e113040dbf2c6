"""
Entry point used by the session controller:

    PORT=3684 LOG_FILE_PATH=/tmp/devtrace/devtrace.log python -m devtrace.viewer
"""
import os
from pathlib import Path
from typing import Optional

from .. import __version__
from ..logging_config import setup_logging
from .app import create_app


def run_viewer(
    port: int,
    log_file: Path,
    screenshot_dir: Optional[Path] = None,
    version: str = __version__,
    host: str = "127.0.0.1",
):
    import uvicorn

    log_file = Path(log_file)
    screenshot_dir = Path(screenshot_dir) if screenshot_dir else log_file.parent / "public" / "screenshots"

    app = create_app(log_file, screenshot_dir, version=version)
    print(f"devtrace log viewer {version} on http://localhost:{port}/logs (log file: {log_file})")
    uvicorn.run(app, host=host, port=port, log_level="warning")


def main():
    setup_logging()
    log_file = os.environ.get("LOG_FILE_PATH")
    if not log_file:
        raise SystemExit("LOG_FILE_PATH is not set")

    run_viewer(
        port=int(os.environ.get("PORT", "3684")),
        log_file=Path(log_file),
        screenshot_dir=Path(os.environ["SCREENSHOT_DIR"]) if os.environ.get("SCREENSHOT_DIR") else None,
        version=os.environ.get("DEVTRACE_VERSION", __version__),
    )


if __name__ == "__main__":
    main()
