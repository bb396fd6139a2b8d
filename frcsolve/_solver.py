"""CaptchaSolver -- the context object callers construct once.

Holds the environment profile, the derived config, the shared browser,
the HTTP client and the strategy list, and exposes the solve entry
points. Nothing here is process-global: two solvers never share state.
"""

import asyncio
import dataclasses
import logging
import platform
import time
from importlib.metadata import PackageNotFoundError, version
from urllib.parse import urlencode

from frcsolve._cascade import Strategy, StrategyCascadeOrchestrator
from frcsolve._challenge import Challenge, contains_challenge, extract
from frcsolve._config import SolverConfig, derive_config
from frcsolve._environment import EnvironmentProfile, EnvironmentProfiler
from frcsolve._errors import CaptchaError, ExtractionFailed, HTTPStatusError
from frcsolve._http import HttpClient, HttpResponse
from frcsolve._result import SolveResult
from frcsolve._strategies import ProtocolFallbackStrategy, SimulationStrategy
from frcsolve.browser import BrowserSessionManager, BrowserStrategy

logger = logging.getLogger("frcsolve")


def _package_version(name: str) -> str | None:
    try:
        return version(name)
    except PackageNotFoundError:
        return None


class CaptchaSolver:
    """Solve FriendlyCaptcha widgets with a cascade of strategies.

    Use as an async context manager so the browser gets closed::

        async with CaptchaSolver() as solver:
            result = await solver.solve_html(html)
            if result.ok:
                await solver.submit_form(form_url, result)

    Args:
        config: Solver settings. Defaults to derive_config(profile).
        profiler: Environment profiler; profiled once, here.
        http: HTTP client for pages, puzzles and form posts.
        browser: Browser session manager for the automation strategy.
        strategies: Replaces the default strategy list
            (browser, protocol fallback, simulation).
        headless: Run Chromium headless (default browser only).
        idle_timeout: Close the browser after this many idle seconds.
        simulation_delay: Artificial latency of the simulation strategy.
    """

    def __init__(
        self,
        config: SolverConfig | None = None,
        profiler: EnvironmentProfiler | None = None,
        http: HttpClient | None = None,
        browser: BrowserSessionManager | None = None,
        strategies: list[Strategy] | None = None,
        headless: bool = True,
        idle_timeout: float = 300.0,
        simulation_delay: float = 2.0,
    ):
        self._profiler = profiler or EnvironmentProfiler()
        self._profile = self._profiler.profile()
        self._config = config or derive_config(self._profile)
        self._http = http or HttpClient(max_retries=self._config.max_retries)
        self._browser = browser or BrowserSessionManager(
            self._profile,
            headless=headless,
            anti_detection=self._config.anti_detection,
            idle_timeout=idle_timeout,
        )
        if strategies is None:
            strategies = [
                BrowserStrategy(self._browser, self._config),
                ProtocolFallbackStrategy(self._http),
                SimulationStrategy(delay=simulation_delay),
            ]
        self._orchestrator = StrategyCascadeOrchestrator(
            strategies, self._profile
        )

    @property
    def profile(self) -> EnvironmentProfile:
        return self._profile

    @property
    def config(self) -> SolverConfig:
        return self._config

    @property
    def orchestrator(self) -> StrategyCascadeOrchestrator:
        return self._orchestrator

    async def solve(
        self, challenge: Challenge, config: SolverConfig | None = None
    ) -> SolveResult:
        """Run the strategy cascade for an extracted challenge."""
        return await self._orchestrator.resolve(challenge, config or self._config)

    async def solve_html(
        self, markup: str, config: SolverConfig | None = None
    ) -> SolveResult:
        """Find the widget in page markup and solve it."""
        start = time.monotonic()
        if not contains_challenge(markup):
            return self._fail(ExtractionFailed("no widget found in markup"), start)
        challenge = extract(markup)
        if challenge is None:
            return self._fail(ExtractionFailed("no site key found in markup"), start)
        return await self.solve(challenge, config)

    async def solve_url(
        self, url: str, config: SolverConfig | None = None
    ) -> SolveResult:
        """Fetch a page and solve the widget on it."""
        start = time.monotonic()
        logger.info("Solving widget from URL: %s", url)
        try:
            resp = await self._http.get(url)
        except CaptchaError as e:
            return self._fail(e, start)
        if not resp.ok:
            return self._fail(HTTPStatusError(resp.status_code, url), start)
        return await self.solve_html(resp.text, config)

    async def solve_site_key(
        self,
        site_key: str,
        puzzle_endpoint: str | None = None,
        config: SolverConfig | None = None,
    ) -> SolveResult:
        """Solve for a known site key without any page markup."""
        return await self.solve(
            Challenge(site_key=site_key, puzzle_endpoint=puzzle_endpoint), config
        )

    async def submit_form(
        self,
        form_url: str,
        result: SolveResult,
        extra_fields: dict[str, str] | None = None,
    ) -> HttpResponse:
        """POST the solved widget fields (plus extras) URL-encoded."""
        if not result.ok:
            raise ValueError(
                f"Cannot submit form: solve was not successful ({result.error})"
            )
        fields = list(result.form_fields)
        if extra_fields:
            fields.extend(extra_fields.items())
        logger.info("Submitting form to %s", form_url)
        return await self._http.post(
            form_url,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            body=urlencode(fields),
        )

    async def diagnose(self, check_browser: bool = False) -> dict:
        """Deployment diagnostics: environment, config, engine, system.

        With ``check_browser`` the browser is also launched and closed
        again, and the outcome is reported under ``engine.launch_check``.
        A browser that was already running is left open.
        """
        environment = dataclasses.asdict(self._profile)
        environment["platform"] = self._profile.platform.value
        report = {
            "environment": environment,
            "configuration": self._config.as_dict(),
            "engine": {
                "package": "patchright",
                "version": _package_version("patchright"),
                "available": self._profile.automation_engine_available,
                "executable": self._profile.browser_executable,
                "launched": self._browser.launched,
            },
            "system": {
                "platform": platform.system(),
                "machine": platform.machine(),
                "python": platform.python_version(),
                "frcsolve": _package_version("frcsolve"),
            },
        }
        if check_browser:
            report["engine"]["launch_check"] = await self._check_browser()
        return report

    async def _check_browser(self) -> dict:
        if not self._profile.automation_engine_available:
            return {"ok": False, "error": "automation engine not available"}

        was_launched = self._browser.launched
        start = time.monotonic()
        try:
            browser = await self._browser.acquire()
            browser_version = browser.version
        except Exception as e:
            logger.warning("Browser launch check failed: %s", e)
            return {
                "ok": False,
                "error": str(e) or type(e).__name__,
                "elapsed_ms": max(0, int((time.monotonic() - start) * 1000)),
            }
        finally:
            if not was_launched:
                await self.close()
        return {
            "ok": True,
            "browser_version": browser_version,
            "elapsed_ms": max(0, int((time.monotonic() - start) * 1000)),
        }

    def _fail(self, failure: CaptchaError, start: float) -> SolveResult:
        logger.warning("%s", failure)
        elapsed = max(0, int((time.monotonic() - start) * 1000))
        return SolveResult.failed(failure, elapsed)

    async def close(self) -> None:
        """Shut down the browser if one was launched."""
        try:
            await self._browser.close()
        except Exception:
            logger.debug("Browser close failed", exc_info=True)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()


def _run_once(method: str, *args, **solver_kwargs) -> SolveResult:
    async def _run():
        async with CaptchaSolver(**solver_kwargs) as solver:
            return await getattr(solver, method)(*args)

    return asyncio.run(_run())


def solve_html(markup: str, **kwargs) -> SolveResult:
    """Module-level convenience: one-shot sync solve from markup."""
    return _run_once("solve_html", markup, **kwargs)


def solve_url(url: str, **kwargs) -> SolveResult:
    """Module-level convenience: one-shot sync solve from a page URL."""
    return _run_once("solve_url", url, **kwargs)


def solve_site_key(
    site_key: str, puzzle_endpoint: str | None = None, **kwargs
) -> SolveResult:
    """Module-level convenience: one-shot sync solve for a site key."""
    return _run_once("solve_site_key", site_key, puzzle_endpoint, **kwargs)
