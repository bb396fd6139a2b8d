"""Browser lifecycle: one shared patchright Chromium per solver."""

import asyncio
import logging
import time

from frcsolve._environment import EnvironmentProfile

logger = logging.getLogger("frcsolve")

_BASE_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
    "--disable-features=VizDisplayCompositor",
]

# Cuts background work that competes with the widget's solver threads.
_PRODUCTION_ARGS = [
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--disable-background-networking",
    "--disable-breakpad",
    "--disable-client-side-phishing-detection",
    "--disable-default-apps",
    "--disable-extensions",
    "--disable-sync",
    "--disable-translate",
    "--metrics-recording-only",
    "--no-default-browser-check",
    "--disable-hang-monitor",
]

_ANTI_DETECTION_ARGS = ["--disable-blink-features=AutomationControlled"]


def launch_args(profile: EnvironmentProfile, anti_detection: bool) -> list[str]:
    args = list(_BASE_ARGS)
    if profile.prod_mode:
        args.extend(_PRODUCTION_ARGS)
    if anti_detection:
        args.extend(_ANTI_DETECTION_ARGS)
    return args


class BrowserSessionManager:
    """Owns a single Chromium instance, launched lazily.

    ``acquire()`` returns a connected browser, launching one on first
    use, after a disconnect, or once the previous one has been idle
    longer than ``idle_timeout`` seconds. Launch is serialized with an
    asyncio.Lock; callers sharing one manager across threads need
    their own guard.
    """

    def __init__(
        self,
        profile: EnvironmentProfile,
        headless: bool = True,
        anti_detection: bool = False,
        idle_timeout: float = 300.0,
        launch_timeout_ms: int | None = None,
    ):
        self._profile = profile
        self._headless = headless
        self._anti_detection = anti_detection
        self._idle_timeout = idle_timeout
        if launch_timeout_ms is None:
            launch_timeout_ms = 15_000 if profile.prod_mode else 10_000
        self._launch_timeout_ms = launch_timeout_ms
        self._playwright = None
        self._browser = None
        self._lock = asyncio.Lock()
        self._last_used: float = 0.0

    @property
    def launched(self) -> bool:
        return self._browser is not None

    def is_healthy(self) -> bool:
        """True if a browser is running and still connected."""
        return self._browser is not None and self._browser.is_connected()

    async def acquire(self):
        """Return a live browser, launching one if needed."""
        async with self._lock:
            now = time.monotonic()
            if self._browser is not None:
                if (
                    self._last_used > 0
                    and (now - self._last_used) > self._idle_timeout
                ):
                    logger.debug(
                        "Browser idle timeout (%.0fs), closing",
                        now - self._last_used,
                    )
                    await self._close_browser()
                elif self._browser.is_connected():
                    self._last_used = now
                    return self._browser
                else:
                    logger.debug("Browser disconnected, relaunching")
                    await self._close_browser()

            await self._launch()
            self._last_used = time.monotonic()
            return self._browser

    async def _launch(self) -> None:
        try:
            from patchright.async_api import async_playwright
        except ImportError:
            raise ImportError(
                "patchright is required for browser solving. "
                "Install with: pip install frcsolve[browser]"
            ) from None

        options = {
            "headless": self._headless,
            "args": launch_args(self._profile, self._anti_detection),
            "timeout": self._launch_timeout_ms,
        }
        if self._profile.browser_executable:
            options["executable_path"] = self._profile.browser_executable

        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(**options)
        except Exception:
            await self._close_browser()
            raise
        logger.info(
            "Browser launched for %s (headless=%s)",
            self._profile.platform,
            self._headless,
        )

    async def _close_browser(self) -> None:
        """Shut down browser and playwright, logging but not raising."""
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception:
                logger.debug("Browser close failed", exc_info=True)
            self._browser = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception:
                logger.debug("Playwright stop failed", exc_info=True)
            self._playwright = None

    async def close(self) -> None:
        """Release the browser. Safe to call when nothing was launched."""
        async with self._lock:
            if self._browser is not None or self._playwright is not None:
                await self._close_browser()
                logger.info("Browser closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()
