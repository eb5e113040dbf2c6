import sys
from collections import defaultdict
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

# Smallest valid PNG: 1x1 transparent pixel
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000154a24f5d0000000049454e44ae426082"
)


class FakeFrame:
    def __init__(self, url: str):
        self.url = url


class FakePage:
    """Stands in for a Playwright Page: records listeners and screenshots."""

    def __init__(self, url: str = "http://localhost:3000/", fail_screenshot: bool = False):
        self.url = url
        self.main_frame = FakeFrame(url)
        self.handlers = defaultdict(list)
        self.screenshots = []
        self.fail_screenshot = fail_screenshot

    def on(self, event, handler):
        self.handlers[event].append(handler)

    def fire(self, event, payload=None):
        for handler in self.handlers[event]:
            handler(payload)

    async def goto(self, url):
        self.url = url
        self.main_frame.url = url

    async def screenshot(self, path, full_page=True, animations="allow"):
        if self.fail_screenshot:
            raise RuntimeError("Target page, context or browser has been closed")
        self.screenshots.append({"path": path, "full_page": full_page, "animations": animations})
        Path(path).write_bytes(PNG_BYTES)

    # Helpers that mimic what the browser would emit

    def navigate(self, url):
        self.url = url
        self.main_frame.url = url
        self.fire("framenavigated", self.main_frame)

    def console(self, text, level="log"):
        self.fire("console", SimpleNamespace(type=level, text=text))

    def page_error(self, message, stack=None):
        self.fire("pageerror", SimpleNamespace(message=message, stack=stack))

    def request(self, url, method="GET"):
        self.fire("request", SimpleNamespace(method=method, url=url))

    def response(self, url, status=200):
        self.fire("response", SimpleNamespace(status=status, url=url))


class FakeContext:
    def __init__(self, pages=None):
        self.pages = list(pages or [])
        self.handlers = defaultdict(list)

    def on(self, event, handler):
        self.handlers[event].append(handler)

    async def new_page(self):
        page = FakePage(url="about:blank")
        self.pages.append(page)
        return page

    def open_page(self, page):
        self.pages.append(page)
        for handler in self.handlers["page"]:
            handler(page)


@pytest.fixture
def make_page():
    return FakePage


@pytest.fixture
def make_context():
    return FakeContext


@pytest.fixture
def png_bytes():
    return PNG_BYTES
