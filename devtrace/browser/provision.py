"""
One-time installation of Playwright's bundled Chromium.
"""
import asyncio
import sys
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from ..errors import BrowserProvisionError
from ..logging_config import get_logger

logger = get_logger("browser.provision")
console = Console()

PROVISION_TIMEOUT = 5 * 60
STUCK_NOTICE_AFTER = 10


def install_command() -> List[str]:
    return [sys.executable, "-m", "playwright", "install", "chromium"]


async def install_chromium(
    timeout: float = PROVISION_TIMEOUT,
    command: Optional[List[str]] = None,
) -> None:
    """Run the Playwright installer, streaming its output to the console.

    Raises BrowserProvisionError if the installer cannot start, fails, or
    runs longer than ``timeout`` seconds.
    """
    command = command or install_command()
    console.print("[blue]⏳ Installing Playwright chromium browser (this may take 2-3 minutes)...[/blue]")
    console.print(f"[dim]Running: {escape(' '.join(command))}[/dim]")

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except OSError as e:
        raise BrowserProvisionError(f"Failed to start Playwright installation: {e}") from e

    seen_output = asyncio.Event()

    async def stream_output():
        while True:
            line = await process.stdout.readline()
            if not line:
                break
            seen_output.set()
            text = line.decode("utf-8", errors="replace").strip()
            if text:
                console.print("[dim]\\[PLAYWRIGHT][/dim]", escape(text))
        await process.wait()

    async def stuck_notice():
        await asyncio.sleep(STUCK_NOTICE_AFTER)
        if not seen_output.is_set():
            console.print("[yellow]⚠️  Installation seems stuck. This is normal for the first run - downloading ~100MB...[/yellow]")

    notice = asyncio.create_task(stuck_notice())
    try:
        await asyncio.wait_for(stream_output(), timeout=timeout)
    except asyncio.TimeoutError:
        if process.returncode is None:
            process.kill()
            await process.wait()
        minutes = timeout / 60
        raise BrowserProvisionError(f"Playwright installation timed out after {minutes:g} minutes")
    finally:
        notice.cancel()

    if process.returncode != 0:
        logger.error_with("Playwright installation failed", exit_code=process.returncode)
        raise BrowserProvisionError(f"Playwright installation failed with exit code {process.returncode}")

    console.print("[green]✅ Playwright chromium installed successfully![/green]")
