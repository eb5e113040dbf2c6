"""
BrowserMonitor - owns the persistent Playwright session for a devtrace run.

Every page callback (console, pageerror, request, response, framenavigated)
becomes a BrowserEvent on one queue. A single consumer task turns events into
unified-log lines and decides which ones deserve a screenshot, so listeners
never block each other and the route marker of a page has exactly one writer.
"""
import asyncio
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError
from rich.console import Console
from rich.markup import escape

from ..errors import BrowserLaunchError, BrowserProvisionError
from ..logging_config import get_logger
from ..unified_log import LogSource, UnifiedLogger
from .models import (
    LAUNCH_CHAIN,
    BrowserEvent,
    EventKind,
    LaunchAttempt,
    LaunchFailureReason,
    LaunchStrategy,
    MonitorState,
    PageHandle,
    ScreenshotLabel,
)
from .provision import PROVISION_TIMEOUT, install_chromium
from .screenshots import ScreenshotPipeline

logger = get_logger("browser")
console = Console()

LAUNCH_ARGS = [
    "--remote-debugging-port=9222",
    "--disable-web-security",
    "--disable-blink-features=AutomationControlled",
    "--device-scale-factor=1.5",
]

LOCAL_HOSTS = ("localhost", "127.0.0.1")
BLANK_PAGE = "about:blank"


def targets_port(url: str, port: int) -> bool:
    """True if ``url`` points at a local server on ``port``."""
    try:
        parsed = urlparse(url)
        return parsed.hostname in LOCAL_HOSTS and parsed.port == int(port)
    except ValueError:
        return False


def route_of(url: str) -> str:
    return urlparse(url).path or "/"


def classify_launch_error(error: Exception, channel: Optional[str] = None) -> LaunchFailureReason:
    message = str(error)
    if "Executable doesn't exist" in message:
        return LaunchFailureReason.EXECUTABLE_MISSING
    if channel and ("distribution" in message or "is not found" in message):
        return LaunchFailureReason.CHANNEL_UNAVAILABLE
    return LaunchFailureReason.OTHER


class BrowserMonitor:
    """Launches the browser and multiplexes page activity into the unified log."""

    def __init__(
        self,
        unified_log: UnifiedLogger,
        screenshots: ScreenshotPipeline,
        port: int,
        reporting_port: int,
        profile_dir: Path,
        headless: bool = False,
        launch_chain: Sequence[LaunchStrategy] = LAUNCH_CHAIN,
        provision: Optional[Callable] = None,
        provision_timeout: float = PROVISION_TIMEOUT,
    ):
        self.unified_log = unified_log
        self.screenshots = screenshots
        self.port = port
        self.reporting_port = reporting_port
        self.profile_dir = Path(profile_dir)
        self.headless = headless
        self.launch_chain = list(launch_chain)
        self.provision_timeout = provision_timeout
        self._provision = provision or install_chromium

        self.state = MonitorState.UNINITIALIZED
        self.context = None
        self.pages: List[PageHandle] = []
        self.launch_attempts: List[LaunchAttempt] = []
        self._playwright = None
        self._queue: Optional[asyncio.Queue] = None
        self._consumer: Optional["asyncio.Task[None]"] = None

    @property
    def app_url(self) -> str:
        return f"http://localhost:{self.port}"

    def is_app_url(self, url: str) -> bool:
        return targets_port(url, self.port)

    def is_reporting_url(self, url: str) -> bool:
        return targets_port(url, self.reporting_port)

    # ==================== Lifecycle ====================

    async def start(self):
        """Launch the browser, open the app and start monitoring."""
        console.print("[blue]🌐 Starting playwright for browser monitoring...[/blue]")
        self.profile_dir.mkdir(parents=True, exist_ok=True)

        self.context = await self._launch()

        page = self.context.pages[0] if self.context.pages else await self.context.new_page()
        try:
            await page.goto(self.app_url)
        except PlaywrightError as e:
            # The dev server may still be starting; keep monitoring so a reload is captured
            self.unified_log.log(LogSource.BROWSER, f"[NAVIGATION ERROR] {self.app_url}: {e}")
            console.print(f"[yellow]⚠️ Could not open {self.app_url} yet: {escape(str(e))}[/yellow]")

        screenshot_url = await self.screenshots.capture(page, ScreenshotLabel.INITIAL_LOAD)
        if screenshot_url:
            self.unified_log.log(LogSource.BROWSER, f"[SCREENSHOT] {screenshot_url}")

        # A failed goto leaves the page on chrome-error://, so skip the origin check
        self.attach(page, force=True)
        self.context.on("page", self.attach)

        self.state = MonitorState.READY
        console.print("[green]✅ Browser monitoring active![/green]")

    async def _ensure_playwright(self):
        if self._playwright is None:
            from playwright.async_api import async_playwright
            self._playwright = await async_playwright().start()
            logger.info("Playwright initialized")

    async def _launch_persistent(self, channel: Optional[str] = None):
        options = {
            "headless": self.headless,
            "args": LAUNCH_ARGS,
        }
        if channel:
            options["channel"] = channel
        return await self._playwright.chromium.launch_persistent_context(str(self.profile_dir), **options)

    async def _launch(self):
        """Walk the launch chain until a strategy yields a browser context."""
        self.state = MonitorState.LAUNCHING
        await self._ensure_playwright()

        for strategy in self.launch_chain:
            if strategy.provision_first:
                self.state = MonitorState.PROVISIONING
                console.print("[yellow]📦 Installing Playwright chromium browser...[/yellow]")
                try:
                    await self._provision(timeout=self.provision_timeout)
                except BrowserProvisionError as e:
                    self.launch_attempts.append(
                        LaunchAttempt(strategy.name, LaunchFailureReason.PROVISION_FAILED, str(e))
                    )
                    self.state = MonitorState.FAILED
                    raise
                self.state = MonitorState.LAUNCHING

            try:
                context = await self._launch_persistent(strategy.channel)
            except PlaywrightError as e:
                reason = classify_launch_error(e, strategy.channel)
                self.launch_attempts.append(LaunchAttempt(strategy.name, reason, str(e)))
                logger.warning_with("Browser launch failed", strategy=strategy.name, reason=reason.value)
                if reason in strategy.continue_on:
                    continue
                break

            self.launch_attempts.append(LaunchAttempt(strategy.name))
            logger.info_with("Browser launched", strategy=strategy.name)
            return context

        self.state = MonitorState.FAILED
        last = self.launch_attempts[-1] if self.launch_attempts else None
        detail = f"{last.strategy}: {last.error}" if last else "no launch strategy configured"
        raise BrowserLaunchError(f"Could not launch a browser ({detail})", attempts=self.launch_attempts)

    async def aclose(self):
        """Stop consuming events. The browser itself is left running."""
        if self._consumer and not self._consumer.done():
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
        self._consumer = None

    # ==================== Page monitoring ====================

    def attach(self, page: Any, force: bool = False) -> Optional[PageHandle]:
        """Attach event listeners to ``page`` if it belongs to the app.

        ``force`` attaches regardless of the current URL.
        """
        url = page.url
        if not force and not self.is_app_url(url) and url != BLANK_PAGE:
            return None

        handle = PageHandle(page=page)
        self.pages.append(handle)
        self._ensure_consumer()
        self.unified_log.log(LogSource.BROWSER, f"[PAGE] New page: {url}")

        page.on("console", lambda message: self._emit(
            EventKind.CONSOLE, handle, level=message.type, text=message.text))
        page.on("pageerror", lambda error: self._emit(
            EventKind.PAGE_ERROR, handle, text=error.message, stack=error.stack or ""))
        page.on("request", lambda request: self._emit(
            EventKind.REQUEST, handle, method=request.method, url=request.url))
        page.on("response", lambda response: self._emit(
            EventKind.RESPONSE, handle, status=response.status, url=response.url))
        page.on("framenavigated", lambda frame: self._on_frame_navigated(handle, frame))
        page.on("close", lambda _: self._detach(handle))
        handle.listeners = ["console", "pageerror", "request", "response", "framenavigated", "close"]
        return handle

    def _detach(self, handle: PageHandle):
        if handle in self.pages:
            self.pages.remove(handle)

    def _on_frame_navigated(self, handle: PageHandle, frame: Any):
        if frame != handle.page.main_frame:
            return
        self._emit(EventKind.NAVIGATION, handle, url=frame.url)

    def _emit(self, kind: EventKind, handle: PageHandle, **fields):
        self._ensure_consumer()
        self._queue.put_nowait(BrowserEvent(kind=kind, handle=handle, page_url=handle.page.url, **fields))

    def _ensure_consumer(self):
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.create_task(self._consume())

    async def drain(self):
        """Wait until every queued event has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def _consume(self):
        while True:
            event = await self._queue.get()
            try:
                await self.handle_event(event)
            except Exception as e:
                logger.error_with("Browser event handling failed", kind=event.kind.value, error=str(e))
                console.print("[red]\\[BROWSER MONITOR ERROR][/red]", escape(str(e)))
            finally:
                self._queue.task_done()

    # ==================== Event decisions ====================

    async def handle_event(self, event: BrowserEvent):
        handlers = {
            EventKind.CONSOLE: self._handle_console,
            EventKind.PAGE_ERROR: self._handle_page_error,
            EventKind.REQUEST: self._handle_request,
            EventKind.RESPONSE: self._handle_response,
            EventKind.NAVIGATION: self._handle_navigation,
        }
        await handlers[event.kind](event)

    async def _screenshot(self, event: BrowserEvent, label: ScreenshotLabel) -> Optional[str]:
        return await self.screenshots.capture(event.handle.page, label)

    async def _handle_console(self, event: BrowserEvent):
        if not self.is_app_url(event.page_url):
            return
        self.unified_log.log(LogSource.BROWSER, f"[CONSOLE {event.level.upper()}] {event.text}")

    async def _handle_page_error(self, event: BrowserEvent):
        if not self.is_app_url(event.page_url):
            return
        screenshot_url = await self._screenshot(event, ScreenshotLabel.ERROR)
        self.unified_log.log(LogSource.BROWSER, f"[PAGE ERROR] {event.text}")
        if screenshot_url:
            self.unified_log.log(LogSource.BROWSER, f"[SCREENSHOT] {screenshot_url}")
        if event.stack:
            self.unified_log.log(LogSource.BROWSER, f"[PAGE ERROR STACK] {event.stack}")

    async def _handle_request(self, event: BrowserEvent):
        if not self.is_app_url(event.page_url) or self.is_reporting_url(event.url):
            return
        self.unified_log.log(LogSource.BROWSER, f"[NETWORK REQUEST] {event.method} {event.url}")

    async def _handle_response(self, event: BrowserEvent):
        if not self.is_app_url(event.page_url) or self.is_reporting_url(event.url):
            return
        if event.status < 400:
            return
        screenshot_url = await self._screenshot(event, ScreenshotLabel.NETWORK_ERROR)
        self.unified_log.log(LogSource.BROWSER, f"[NETWORK ERROR] {event.status} {event.url}")
        if screenshot_url:
            self.unified_log.log(LogSource.BROWSER, f"[SCREENSHOT] {screenshot_url}")

    async def _handle_navigation(self, event: BrowserEvent):
        if not self.is_app_url(event.url):
            return
        self.unified_log.log(LogSource.BROWSER, f"[NAVIGATION] {event.url}")

        route = route_of(event.url)
        if route == event.handle.last_route:
            return
        screenshot_url = await self._screenshot(event, ScreenshotLabel.ROUTE_CHANGE)
        if screenshot_url:
            self.unified_log.log(LogSource.BROWSER, f"[SCREENSHOT] {screenshot_url}")
        event.handle.last_route = route

    def get_pages(self) -> List[dict]:
        return [handle.to_dict() for handle in self.pages]
