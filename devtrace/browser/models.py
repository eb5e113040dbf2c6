"""
Browser monitoring data models.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


class MonitorState(Enum):
    UNINITIALIZED = "uninitialized"
    LAUNCHING = "launching"
    PROVISIONING = "provisioning"
    READY = "ready"
    FAILED = "failed"


class EventKind(Enum):
    CONSOLE = "console"
    PAGE_ERROR = "pageerror"
    REQUEST = "request"
    RESPONSE = "response"
    NAVIGATION = "navigation"


class ScreenshotLabel(Enum):
    INITIAL_LOAD = "initial-load"
    ERROR = "error"
    NETWORK_ERROR = "network-error"
    ROUTE_CHANGE = "route-change"


class LaunchFailureReason(Enum):
    CHANNEL_UNAVAILABLE = "channel_unavailable"
    EXECUTABLE_MISSING = "executable_missing"
    PROVISION_FAILED = "provision_failed"
    OTHER = "other"


@dataclass(frozen=True)
class LaunchStrategy:
    """One step of the browser launch chain.

    ``continue_on`` lists the failure reasons that move on to the next
    strategy; any other failure ends the chain.
    """
    name: str
    channel: Optional[str] = None
    provision_first: bool = False
    continue_on: FrozenSet[LaunchFailureReason] = frozenset()


ALL_REASONS = frozenset(LaunchFailureReason)

LAUNCH_CHAIN: List[LaunchStrategy] = [
    LaunchStrategy("installed-chrome", channel="chrome", continue_on=ALL_REASONS),
    LaunchStrategy("bundled-chromium", continue_on=frozenset({LaunchFailureReason.EXECUTABLE_MISSING})),
    LaunchStrategy("provision-then-bundled", provision_first=True),
]


@dataclass
class LaunchAttempt:
    strategy: str
    reason: Optional[LaunchFailureReason] = None
    error: str = ""

    @property
    def succeeded(self) -> bool:
        return self.reason is None

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "succeeded": self.succeeded,
            "reason": self.reason.value if self.reason else None,
            "error": self.error,
        }


@dataclass
class PageHandle:
    """An open browser tab under monitoring."""
    page: Any
    last_route: str = ""
    listeners: List[str] = field(default_factory=list)
    opened_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def url(self) -> str:
        return self.page.url

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "last_route": self.last_route,
            "listeners": list(self.listeners),
            "opened_at": self.opened_at,
        }


@dataclass
class BrowserEvent:
    """One browser callback, queued for the monitor's consumer."""
    kind: EventKind
    handle: PageHandle
    page_url: str
    level: str = ""
    text: str = ""
    method: str = ""
    url: str = ""
    status: int = 0
    stack: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "page_url": self.page_url,
            "level": self.level,
            "text": self.text,
            "method": self.method,
            "url": self.url,
            "status": self.status,
            "stack": self.stack,
            "timestamp": self.timestamp,
        }


@dataclass
class ScreenshotArtifact:
    """A captured screenshot, stored locally and in the viewer's static dir."""
    timestamp: str
    label: str
    filename: str
    local_path: str
    public_path: str
    url: str
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "label": self.label,
            "filename": self.filename,
            "local_path": self.local_path,
            "public_path": self.public_path,
            "url": self.url,
            "created_at": self.created_at,
        }
