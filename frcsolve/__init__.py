"""frcsolve -- FriendlyCaptcha widget solving with a strategy cascade."""

import logging
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("frcsolve")
except PackageNotFoundError:
    __version__ = "0.0.0"

from frcsolve._cascade import (
    CascadeReport,
    Strategy,
    StrategyCascadeOrchestrator,
    run_cascade,
)
from frcsolve._challenge import (
    SITE_KEY_FIELD,
    SOLUTION_FIELD,
    Challenge,
    contains_challenge,
    describe_challenge,
    extract,
    form_fields,
)
from frcsolve._config import (
    ResourceLimits,
    SolveMethod,
    SolverConfig,
    derive_config,
)
from frcsolve._environment import (
    EnvironmentProfile,
    EnvironmentProfiler,
    Platform,
)
from frcsolve._errors import (
    AllStrategiesFailed,
    CaptchaError,
    ConnectionFailed,
    ExtractionFailed,
    HTTPStatusError,
    NoStrategiesAvailable,
    StrategyError,
    StrategyExecutionError,
    StrategyTimeout,
)
from frcsolve._http import HttpClient, HttpResponse
from frcsolve._result import (
    AttemptRecord,
    AutomationDiagnostics,
    Outcome,
    ProtocolDiagnostics,
    SimulationDiagnostics,
    Solution,
    SolveResult,
)
from frcsolve._solver import CaptchaSolver, solve_html, solve_site_key, solve_url
from frcsolve._strategies import (
    ProtocolFallbackStrategy,
    SimulationStrategy,
    simple_hash,
)

__all__ = [
    "__version__",
    "CaptchaSolver",
    "Challenge",
    "contains_challenge",
    "extract",
    "describe_challenge",
    "form_fields",
    "SOLUTION_FIELD",
    "SITE_KEY_FIELD",
    "EnvironmentProfile",
    "EnvironmentProfiler",
    "Platform",
    "SolverConfig",
    "ResourceLimits",
    "SolveMethod",
    "derive_config",
    "Strategy",
    "StrategyCascadeOrchestrator",
    "CascadeReport",
    "run_cascade",
    "ProtocolFallbackStrategy",
    "SimulationStrategy",
    "simple_hash",
    "Solution",
    "SolveResult",
    "Outcome",
    "AttemptRecord",
    "AutomationDiagnostics",
    "ProtocolDiagnostics",
    "SimulationDiagnostics",
    "HttpClient",
    "HttpResponse",
    "CaptchaError",
    "ExtractionFailed",
    "NoStrategiesAvailable",
    "StrategyError",
    "StrategyTimeout",
    "StrategyExecutionError",
    "AllStrategiesFailed",
    "ConnectionFailed",
    "HTTPStatusError",
    "solve_html",
    "solve_url",
    "solve_site_key",
]

# Silent by default; callers opt in via logging.getLogger("frcsolve").setLevel(...)
logging.getLogger("frcsolve").addHandler(logging.NullHandler())
