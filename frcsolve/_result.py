"""Solutions, per-method diagnostics and solve results."""

import datetime
import enum
from dataclasses import dataclass, field
from typing import ClassVar
from urllib.parse import urlencode

from frcsolve._config import SolveMethod
from frcsolve._errors import CaptchaError, StrategyError


class Outcome(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"

    def __str__(self) -> str:
        return self.value


# ---------------------------------------------------------------------------
# Diagnostics (tagged by method)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AutomationDiagnostics:
    """Browser run details: which sub-strategy produced the token."""

    method: ClassVar[SolveMethod] = SolveMethod.AUTOMATION

    sub_strategy: str
    anti_detection: bool = False
    user_agent: str | None = None


@dataclass(frozen=True)
class ProtocolDiagnostics:
    """Puzzle fetch and nonce search details.

    ``converged`` is False when the iteration ceiling was hit and the
    work value is a time-seeded hash rather than a search result.
    """

    method: ClassVar[SolveMethod] = SolveMethod.PROTOCOL_FALLBACK

    puzzle_url: str
    difficulty: int
    target: str
    iterations: int
    converged: bool
    nonce: int | None = None


@dataclass(frozen=True)
class SimulationDiagnostics:
    method: ClassVar[SolveMethod] = SolveMethod.SIMULATION

    delay_ms: int
    difficulty: int
    lang: str


Diagnostics = AutomationDiagnostics | ProtocolDiagnostics | SimulationDiagnostics


@dataclass(frozen=True)
class Solution:
    """A token produced by one strategy."""

    token: str
    method: SolveMethod
    diagnostics: Diagnostics
    elapsed_ms: int = 0
    produced_at: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    def __post_init__(self):
        if not self.token:
            raise ValueError("Solution token must be non-empty")
        if self.elapsed_ms < 0:
            raise ValueError(f"elapsed_ms must be >= 0, got {self.elapsed_ms}")
        if self.diagnostics.method is not self.method:
            raise ValueError(
                f"{type(self.diagnostics).__name__} does not belong "
                f"to method {self.method}"
            )

    @property
    def verified(self) -> bool:
        """True only when the genuine widget computed the token.

        Protocol-fallback and simulation tokens are shaped like real
        responses but are not produced by the real proof-of-work
        algorithm, so the verifying server will reject them.
        """
        return self.method is SolveMethod.AUTOMATION


@dataclass(frozen=True)
class AttemptRecord:
    """Outcome of one strategy attempt inside a cascade."""

    index: int
    strategy: str
    method: SolveMethod
    elapsed_ms: int
    error: StrategyError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class SolveResult:
    """Structured outcome of a solve call.

    Exactly one of ``solution`` / ``failure`` is set. Callers check
    ``outcome`` (or ``ok``); ``raise_for_outcome()`` turns a failure
    into an exception for callers who prefer that.
    """

    outcome: Outcome
    elapsed_ms: int
    solution: Solution | None = None
    failure: CaptchaError | None = None
    form_fields: tuple[tuple[str, str], ...] = ()
    attempts: tuple[AttemptRecord, ...] = ()

    def __post_init__(self):
        if self.elapsed_ms < 0:
            raise ValueError(f"elapsed_ms must be >= 0, got {self.elapsed_ms}")
        if self.outcome is Outcome.SUCCESS:
            if self.solution is None or self.failure is not None:
                raise ValueError("successful result needs a solution and no error")
        elif self.solution is not None or self.failure is None:
            raise ValueError("failed result needs an error and no solution")

    @classmethod
    def succeeded(
        cls,
        solution: Solution,
        elapsed_ms: int,
        form_fields=(),
        attempts=(),
    ) -> "SolveResult":
        return cls(
            outcome=Outcome.SUCCESS,
            elapsed_ms=elapsed_ms,
            solution=solution,
            form_fields=tuple(form_fields),
            attempts=tuple(attempts),
        )

    @classmethod
    def failed(
        cls, failure: CaptchaError, elapsed_ms: int, attempts=()
    ) -> "SolveResult":
        return cls(
            outcome=Outcome.FAILURE,
            elapsed_ms=elapsed_ms,
            failure=failure,
            attempts=tuple(attempts),
        )

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @property
    def error(self) -> str | None:
        if self.failure is None:
            return None
        return str(self.failure)

    def form_data(self) -> str:
        """URL-encoded form fields, ready for a form POST body."""
        return urlencode(list(self.form_fields))

    def raise_for_outcome(self) -> None:
        if self.failure is not None:
            raise self.failure

    def __repr__(self) -> str:
        if self.ok:
            return (
                f"<SolveResult [success via {self.solution.method}] "
                f"{self.elapsed_ms}ms>"
            )
        return f"<SolveResult [failure] {self.error!r}>"
