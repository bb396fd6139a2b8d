"""Solver configuration derived from the environment profile."""

import dataclasses
import enum
import logging
from dataclasses import dataclass

from frcsolve._environment import EnvironmentProfile

logger = logging.getLogger("frcsolve")


class SolveMethod(str, enum.Enum):
    """Strategy families, also used as the Solution method tag."""

    AUTOMATION = "automation"
    PROTOCOL_FALLBACK = "protocol-fallback"
    SIMULATION = "simulation"

    def __str__(self) -> str:
        return self.value


# Priority order used when the environment doesn't narrow things down.
DEFAULT_STRATEGY_ORDER = (
    SolveMethod.AUTOMATION,
    SolveMethod.PROTOCOL_FALLBACK,
    SolveMethod.SIMULATION,
)


@dataclass(frozen=True)
class ResourceLimits:
    """Advisory budget targets. Nothing in frcsolve enforces them."""

    max_memory_mb: int
    max_cpu_percent: int


@dataclass(frozen=True)
class SolverConfig:
    """Immutable solver settings.

    Use ``replace()`` (or derive_config) to get a different config;
    instances are never changed in place.
    """

    timeout_ms: int
    max_retries: int
    enabled_strategies: tuple[SolveMethod, ...]
    anti_detection: bool
    resource_limits: ResourceLimits

    def __post_init__(self):
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")
        if self.max_retries < 0:
            raise ValueError(
                f"max_retries must be non-negative, got {self.max_retries}"
            )
        methods = tuple(SolveMethod(m) for m in self.enabled_strategies)
        if len(set(methods)) != len(methods):
            raise ValueError(
                f"enabled_strategies contains duplicates: {methods}"
            )
        object.__setattr__(self, "enabled_strategies", methods)

    def replace(self, **changes) -> "SolverConfig":
        return dataclasses.replace(self, **changes)

    def as_dict(self) -> dict:
        return {
            "timeout_ms": self.timeout_ms,
            "max_retries": self.max_retries,
            "enabled_strategies": [m.value for m in self.enabled_strategies],
            "anti_detection": self.anti_detection,
            "resource_limits": dataclasses.asdict(self.resource_limits),
        }


def derive_config(profile: EnvironmentProfile) -> SolverConfig:
    """Build the default SolverConfig for an environment profile.

    Pure function: the same profile always yields an equal config.
    """
    enabled = []
    # Browsers don't deploy reliably on serverless platforms even when
    # a binary is present.
    if profile.automation_engine_available and not profile.serverless:
        enabled.append(SolveMethod.AUTOMATION)
    enabled.append(SolveMethod.PROTOCOL_FALLBACK)
    enabled.append(SolveMethod.SIMULATION)

    if profile.serverless:
        limits = ResourceLimits(max_memory_mb=512, max_cpu_percent=80)
    else:
        limits = ResourceLimits(max_memory_mb=1024, max_cpu_percent=90)

    config = SolverConfig(
        timeout_ms=20_000 if profile.prod_mode else 30_000,
        max_retries=2 if profile.prod_mode else 3,
        enabled_strategies=tuple(enabled),
        anti_detection=profile.prod_mode,
        resource_limits=limits,
    )
    logger.debug("Solver config: %s", config.as_dict())
    return config
