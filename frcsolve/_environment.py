"""Environment profiling: one-time classification of the runtime.

The profile decides which strategies can run at all (no browser on
serverless platforms, no automation without patchright installed). It
is computed once per profiler and never re-read, so a solver behaves
the same for its whole lifetime even if the process environment
changes underneath it.
"""

import enum
import importlib.util
import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass

logger = logging.getLogger("frcsolve")

MODE_VAR = "FRCSOLVE_ENV"

# Checked in this order; the first one present names the platform.
_SERVERLESS_PLATFORMS = (
    ("VERCEL", "vercel"),
    ("NETLIFY", "netlify"),
    ("AWS_LAMBDA_FUNCTION_NAME", "aws-lambda"),
    ("CF_PAGES", "cloudflare"),
)
# Serverless without a dedicated platform tag (Google Cloud Functions).
_SERVERLESS_ONLY = ("FUNCTION_NAME",)

_EXECUTABLE_VARS = ("CHROME_PATH", "FRCSOLVE_BROWSER_PATH")
VERCEL_CHROMIUM = "/usr/bin/chromium-browser"


class Platform(str, enum.Enum):
    """Deployment platform tags."""

    VERCEL = "vercel"
    NETLIFY = "netlify"
    AWS_LAMBDA = "aws-lambda"
    CLOUDFLARE = "cloudflare"
    DEVELOPMENT = "development"
    SERVER = "server"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class EnvironmentProfile:
    """Immutable snapshot of the deployment context."""

    dev_mode: bool
    prod_mode: bool
    serverless: bool
    platform: Platform
    automation_engine_available: bool
    browser_executable: str | None = None


def _patchright_installed() -> bool:
    return importlib.util.find_spec("patchright") is not None


class EnvironmentProfiler:
    """Builds an EnvironmentProfile on first use and caches it.

    Args:
        environ: Mapping to read signals from. Defaults to os.environ.
        engine_check: Callable reporting whether the browser automation
            package is importable.
        path_exists: Callable used to check a configured browser
            executable.
    """

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        engine_check: Callable[[], bool] | None = None,
        path_exists: Callable[[str], bool] | None = None,
    ):
        self._environ = environ if environ is not None else os.environ
        self._engine_check = engine_check or _patchright_installed
        self._path_exists = path_exists or os.path.exists
        self._profile: EnvironmentProfile | None = None

    def profile(self) -> EnvironmentProfile:
        """Return the cached profile, computing it on the first call."""
        if self._profile is None:
            self._profile = self._detect()
            logger.info("Environment detected: %s", self._profile)
        return self._profile

    def _detect(self) -> EnvironmentProfile:
        env = dict(self._environ)
        mode = env.get(MODE_VAR, "").strip().lower()
        dev_mode = mode == "development"
        prod_mode = mode == "production"

        platform = None
        for var, tag in _SERVERLESS_PLATFORMS:
            if env.get(var):
                platform = Platform(tag)
                break
        serverless = platform is not None or any(
            env.get(var) for var in _SERVERLESS_ONLY
        )
        if platform is None:
            platform = Platform.DEVELOPMENT if dev_mode else Platform.SERVER

        executable = None
        for var in _EXECUTABLE_VARS:
            if env.get(var):
                executable = env[var]
                break
        if executable is None and platform is Platform.VERCEL:
            executable = VERCEL_CHROMIUM

        available = False
        if self._engine_check():
            if executable:
                available = self._path_exists(executable)
                if not available:
                    logger.debug(
                        "Browser executable %s not found", executable
                    )
            else:
                # No explicit binary: trust the bundled browser unless
                # we're on a serverless platform.
                available = not serverless
        else:
            logger.debug("patchright not installed, automation disabled")

        return EnvironmentProfile(
            dev_mode=dev_mode,
            prod_mode=prod_mode,
            serverless=serverless,
            platform=platform,
            automation_engine_available=available,
            browser_executable=executable,
        )
