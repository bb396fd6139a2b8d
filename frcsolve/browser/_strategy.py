"""Browser-automation strategy and its widget render sub-strategies.

The genuine widget script runs in a real page and computes the
proof-of-work itself, so this is the only method whose tokens are
verified. Three render variants are tried in order through the same
cascade runner as the top level:

- ``direct-widget`` - widget div in the page itself
- ``iframe-widget`` - same document inside a named srcdoc iframe
- ``manual-widget`` - library injected, widget built by script
"""

import dataclasses
import logging
import time

from frcsolve._cascade import Strategy, active_config, run_cascade
from frcsolve._challenge import Challenge
from frcsolve._config import SolveMethod, SolverConfig
from frcsolve._errors import StrategyExecutionError
from frcsolve._result import AutomationDiagnostics, Solution
from frcsolve.browser._pages import (
    IFRAME_NAME,
    MANUAL_INSTANTIATION_JS,
    READ_SOLUTION_JS,
    SOLUTION_READY_JS,
    START_WIDGET_JS,
    STEALTH_INIT_JS,
    WIDGET_CDN_URL,
    WIDGET_SELECTOR,
    iframe_page,
    manual_config,
    manual_page,
    widget_page,
)
from frcsolve.browser._session import BrowserSessionManager

logger = logging.getLogger("frcsolve")

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1920, "height": 1080}
BLOCKED_RESOURCE_TYPES = frozenset({"image", "stylesheet", "font", "media"})
WIDGET_READY_TIMEOUT_MS = 10_000


async def _block_heavy_resources(route) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


def _forward_console(msg) -> None:
    logger.debug("Browser console: %s", msg.text)


# ---------------------------------------------------------------------------
# Sub-strategies
# ---------------------------------------------------------------------------


class _WidgetRender(Strategy):
    """Render a widget document, start it, wait for the solution field."""

    method = SolveMethod.AUTOMATION

    def __init__(self, page, wait_timeout_ms: int):
        self._page = page
        self._wait_timeout_ms = wait_timeout_ms

    async def _load(self, challenge: Challenge):
        """Load the document and return the frame holding the widget."""
        raise NotImplementedError

    async def attempt(self, challenge: Challenge) -> Solution:
        started = time.monotonic()
        target = await self._load(challenge)
        await target.wait_for_selector(
            WIDGET_SELECTOR, timeout=WIDGET_READY_TIMEOUT_MS
        )
        started_widget = await target.evaluate(START_WIDGET_JS)
        if not started_widget:
            logger.debug("%s: no start() on widget, relying on data-start", self.name)
        await target.wait_for_function(
            SOLUTION_READY_JS, timeout=self._wait_timeout_ms
        )
        token = await target.evaluate(READ_SOLUTION_JS)
        if not token:
            raise StrategyExecutionError(self.name, "solution field stayed empty")
        return Solution(
            token=token,
            method=self.method,
            elapsed_ms=int((time.monotonic() - started) * 1000),
            diagnostics=AutomationDiagnostics(sub_strategy=self.name),
        )


class DirectWidgetRender(_WidgetRender):
    name = "direct-widget"

    async def _load(self, challenge: Challenge):
        await self._page.set_content(
            widget_page(challenge), wait_until="networkidle"
        )
        return self._page


class IframeWidgetRender(_WidgetRender):
    name = "iframe-widget"

    async def _load(self, challenge: Challenge):
        await self._page.set_content(
            iframe_page(challenge), wait_until="networkidle"
        )
        await self._page.wait_for_selector(
            f'iframe[name="{IFRAME_NAME}"]', timeout=WIDGET_READY_TIMEOUT_MS
        )
        frame = self._page.frame(name=IFRAME_NAME)
        if frame is None:
            raise StrategyExecutionError(self.name, "widget iframe not found")
        return frame


class ManualWidgetInstantiation(Strategy):
    """Inject the widget library and build the widget from script."""

    name = "manual-widget"
    method = SolveMethod.AUTOMATION

    def __init__(self, page, wait_timeout_ms: int):
        self._page = page
        self._wait_timeout_ms = wait_timeout_ms

    async def attempt(self, challenge: Challenge) -> Solution:
        started = time.monotonic()
        await self._page.set_content(
            manual_page(challenge), wait_until="networkidle"
        )
        await self._page.add_script_tag(url=WIDGET_CDN_URL)
        token = await self._page.evaluate(
            MANUAL_INSTANTIATION_JS,
            manual_config(challenge, self._wait_timeout_ms),
        )
        if not token:
            raise StrategyExecutionError(self.name, "widget returned no solution")
        return Solution(
            token=token,
            method=self.method,
            elapsed_ms=int((time.monotonic() - started) * 1000),
            diagnostics=AutomationDiagnostics(sub_strategy=self.name),
        )


SUB_STRATEGIES = (DirectWidgetRender, IframeWidgetRender, ManualWidgetInstantiation)


# ---------------------------------------------------------------------------
# Outer strategy
# ---------------------------------------------------------------------------


class BrowserStrategy(Strategy):
    """Solve by running the real widget in a browser page.

    Each attempt opens its own context and page on the shared browser
    and always closes them, whatever the outcome.
    """

    name = "browser"
    method = SolveMethod.AUTOMATION

    def __init__(
        self,
        session: BrowserSessionManager,
        config: SolverConfig,
        sub_strategies=SUB_STRATEGIES,
    ):
        self._session = session
        self._config = config
        self._sub_strategies = tuple(sub_strategies)

    @property
    def config(self) -> SolverConfig:
        """Config of the resolve() call in progress, else the one given here."""
        return active_config.get(self._config)

    def _context_options(self, config: SolverConfig) -> dict:
        options = {"ignore_https_errors": True}
        if config.anti_detection:
            options["user_agent"] = USER_AGENT
            options["viewport"] = dict(VIEWPORT)
        return options

    async def _configure_page(self, page, config: SolverConfig) -> None:
        if config.anti_detection:
            await page.add_init_script(STEALTH_INIT_JS)
            await page.route("**/*", _block_heavy_resources)
        page.on("console", _forward_console)

    async def attempt(self, challenge: Challenge) -> Solution:
        started = time.monotonic()
        config = self.config
        browser = await self._session.acquire()
        context = await browser.new_context(**self._context_options(config))
        page = None
        try:
            page = await context.new_page()
            await self._configure_page(page, config)
            try:
                user_agent = await page.evaluate("navigator.userAgent")
            except Exception:
                logger.debug("Could not read navigator.userAgent", exc_info=True)
                user_agent = None

            subs = [cls(page, config.timeout_ms) for cls in self._sub_strategies]
            report = await run_cascade(
                subs, challenge, config.timeout_ms, label="browser strategy"
            )
            if report.solution is None:
                raise StrategyExecutionError(
                    self.name,
                    "All browser strategies failed. "
                    f"Last error: {report.last_error}",
                )

            solution = report.solution
            return dataclasses.replace(
                solution,
                elapsed_ms=int((time.monotonic() - started) * 1000),
                diagnostics=dataclasses.replace(
                    solution.diagnostics,
                    anti_detection=config.anti_detection,
                    user_agent=user_agent,
                ),
            )
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception:
                    logger.debug("Error closing page", exc_info=True)
            try:
                await context.close()
            except Exception:
                logger.debug("Error closing browser context", exc_info=True)
