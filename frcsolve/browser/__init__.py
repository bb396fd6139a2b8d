"""Browser-based widget solving via patchright (patched Playwright)."""

from frcsolve.browser._session import BrowserSessionManager, launch_args
from frcsolve.browser._strategy import (
    BLOCKED_RESOURCE_TYPES,
    SUB_STRATEGIES,
    USER_AGENT,
    VIEWPORT,
    BrowserStrategy,
    DirectWidgetRender,
    IframeWidgetRender,
    ManualWidgetInstantiation,
)

__all__ = [
    "BLOCKED_RESOURCE_TYPES",
    "BrowserSessionManager",
    "BrowserStrategy",
    "DirectWidgetRender",
    "IframeWidgetRender",
    "ManualWidgetInstantiation",
    "SUB_STRATEGIES",
    "USER_AGENT",
    "VIEWPORT",
    "launch_args",
]
