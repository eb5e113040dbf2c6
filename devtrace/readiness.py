"""
Readiness polling for HTTP services.

Readiness is advisory: a timeout is reported to the caller, never raised, so a
misbehaving dev server cannot block the rest of the session from starting.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx
from rich.console import Console

from .logging_config import get_logger

logger = get_logger("readiness")
console = Console()

DEFAULT_MAX_ATTEMPTS = 30
DEFAULT_INTERVAL = 1.0
DEFAULT_TIMEOUT = 2.0


class ReadinessOutcome(Enum):
    READY = "ready"
    TIMED_OUT = "timed_out"


@dataclass
class ReadinessResult:
    url: str
    outcome: ReadinessOutcome
    attempts: int
    status_code: Optional[int] = None

    @property
    def ready(self) -> bool:
        return self.outcome == ReadinessOutcome.READY

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "outcome": self.outcome.value,
            "attempts": self.attempts,
            "status_code": self.status_code,
        }


def is_ready_status(status_code: int) -> bool:
    # A 404 still proves the server is up and answering
    return 200 <= status_code < 300 or status_code == 404


async def head_status(client: httpx.AsyncClient, url: str, timeout: float = DEFAULT_TIMEOUT) -> Optional[int]:
    """Send one HEAD request; return the status code, or None if unreachable."""
    try:
        response = await client.head(url, timeout=timeout)
        return response.status_code
    except httpx.HTTPError as e:
        logger.debug_with("Readiness request failed", url=url, error=str(e))
        return None


async def wait_for_ready(
    url: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    interval: float = DEFAULT_INTERVAL,
    timeout: float = DEFAULT_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None,
    label: str = "Server",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ReadinessResult:
    """Poll ``url`` until it answers with 2xx/404 or ``max_attempts`` run out."""
    console.print(f"[blue]⏳ Waiting for {label} to be ready...[/blue]")

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=timeout)

    last_status = None
    try:
        for attempt in range(1, max_attempts + 1):
            last_status = await head_status(client, url, timeout=timeout)
            if last_status is not None and is_ready_status(last_status):
                console.print(f"[green]✅ {label} is ready![/green]")
                return ReadinessResult(url, ReadinessOutcome.READY, attempt, last_status)

            console.print(f"[dim]{label} not ready yet (attempt {attempt}/{max_attempts})...[/dim]")
            if attempt < max_attempts:
                await sleep(interval)
    finally:
        if owns_client:
            await client.aclose()

    console.print(f"[yellow]⚠️ {label} health check failed, but continuing anyway...[/yellow]")
    logger.warning_with("Readiness timed out", url=url, attempts=max_attempts)
    return ReadinessResult(url, ReadinessOutcome.TIMED_OUT, max_attempts, last_status)
