"""Strategy cascade: race each strategy against a timer, first win stops.

The same ``run_cascade`` coroutine drives both the top-level cascade
(browser -> protocol fallback -> simulation) and the browser strategy's
inner cascade of widget render variants.

Cascade states::

    Idle -> SelectingStrategies -> Attempting(i)
        Attempting(i) --success--> Done
        Attempting(i) --failure--> Attempting(i + 1)
        Attempting(last) --failure--> Done (all failed)

Attempts run strictly one after another. A timed-out attempt's task is
cancelled but not awaited: cancellation is advisory because the page
and network collaborators can't always be interrupted. Whatever the
abandoned task eventually produces is consumed and dropped.
"""

import asyncio
import contextvars
import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from frcsolve._challenge import Challenge, form_fields
from frcsolve._config import SolveMethod, SolverConfig
from frcsolve._environment import EnvironmentProfile
from frcsolve._errors import (
    AllStrategiesFailed,
    NoStrategiesAvailable,
    StrategyError,
    StrategyExecutionError,
    StrategyTimeout,
)
from frcsolve._result import AttemptRecord, Solution, SolveResult

logger = logging.getLogger("frcsolve")

# Config of the resolve() call in progress. Attempt tasks copy the
# context when created, so strategies see the per-call config.
active_config: contextvars.ContextVar[SolverConfig] = contextvars.ContextVar(
    "frcsolve_active_config"
)


class Strategy:
    """One interchangeable way of producing a token.

    Subclasses set ``name`` and ``method`` and implement ``attempt``,
    which returns a Solution or raises. Any exception counts as a
    failed attempt.
    """

    name: str = "strategy"
    method: SolveMethod = SolveMethod.SIMULATION

    async def attempt(self, challenge: Challenge) -> Solution:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def _elapsed_ms(start: float) -> int:
    return max(0, int((time.monotonic() - start) * 1000))


def _discard_outcome(task: asyncio.Task) -> None:
    """Retrieve an abandoned task's outcome so asyncio doesn't warn."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(
            "Abandoned attempt finished late with %s: %s",
            type(exc).__name__,
            exc,
        )
    else:
        logger.debug("Abandoned attempt finished late, result dropped")


async def race(
    strategy: Strategy, challenge: Challenge, timeout_ms: int
) -> Solution:
    """Run one attempt against a timer of ``timeout_ms``.

    Raises StrategyTimeout if the timer wins, StrategyExecutionError
    for anything the strategy raised that isn't already a
    StrategyError.
    """
    task = asyncio.ensure_future(strategy.attempt(challenge))
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if not done:
        task.cancel()
        task.add_done_callback(_discard_outcome)
        raise StrategyTimeout(strategy.name, timeout_ms)

    try:
        solution = task.result()
    except StrategyError:
        raise
    except asyncio.CancelledError:
        raise StrategyExecutionError(strategy.name, "attempt was cancelled") from None
    except Exception as e:
        message = str(e) or type(e).__name__
        raise StrategyExecutionError(strategy.name, message) from e

    if not isinstance(solution, Solution):
        raise StrategyExecutionError(
            strategy.name, f"strategy returned {type(solution).__name__}, not a Solution"
        )
    return solution


@dataclass(frozen=True)
class CascadeReport:
    """What a cascade run produced: a solution or the last error."""

    solution: Solution | None
    attempts: tuple[AttemptRecord, ...]
    last_error: str = ""

    @property
    def winner(self) -> AttemptRecord | None:
        if self.solution is None:
            return None
        return self.attempts[-1]


async def run_cascade(
    strategies: Sequence[Strategy],
    challenge: Challenge,
    timeout_ms: int,
    label: str = "strategy",
) -> CascadeReport:
    """Try strategies in order until one succeeds."""
    attempts: list[AttemptRecord] = []
    last_error = ""
    total = len(strategies)

    for i, strategy in enumerate(strategies):
        logger.info(
            "Trying %s %d/%d: %s", label, i + 1, total, strategy.name
        )
        started = time.monotonic()
        try:
            solution = await race(strategy, challenge, timeout_ms)
        except StrategyError as e:
            attempts.append(
                AttemptRecord(
                    index=i,
                    strategy=strategy.name,
                    method=strategy.method,
                    elapsed_ms=_elapsed_ms(started),
                    error=e,
                )
            )
            last_error = str(e)
            logger.info(
                "%s %d/%d (%s) failed: %s",
                label.capitalize(), i + 1, total, strategy.name, last_error,
            )
            continue

        attempts.append(
            AttemptRecord(
                index=i,
                strategy=strategy.name,
                method=strategy.method,
                elapsed_ms=_elapsed_ms(started),
            )
        )
        return CascadeReport(
            solution=solution,
            attempts=tuple(attempts),
            last_error=last_error,
        )

    return CascadeReport(
        solution=None, attempts=tuple(attempts), last_error=last_error
    )


class StrategyCascadeOrchestrator:
    """Selects strategies for a config and runs the cascade.

    Args:
        strategies: Registered strategies in priority order. Selection
            keeps those whose method is enabled, ordered by the
            config's ``enabled_strategies`` (ties keep this order).
        profile: Environment profile used to gate automation.
    """

    def __init__(
        self, strategies: Iterable[Strategy], profile: EnvironmentProfile
    ):
        self._strategies = list(strategies)
        self._profile = profile

    @property
    def strategies(self) -> list[Strategy]:
        return list(self._strategies)

    def select(self, config: SolverConfig) -> list[Strategy]:
        """Ordered strategies that may run under ``config``."""
        priority = {m: i for i, m in enumerate(config.enabled_strategies)}
        selected = [
            s
            for s in self._strategies
            if s.method in priority
            and (
                s.method is not SolveMethod.AUTOMATION
                or self._profile.automation_engine_available
            )
        ]
        # sorted() is stable, so registration order breaks ties.
        return sorted(selected, key=lambda s: priority[s.method])

    async def resolve(
        self, challenge: Challenge, config: SolverConfig
    ) -> SolveResult:
        start = time.monotonic()
        strategies = self.select(config)

        if not strategies:
            failure = NoStrategiesAvailable(
                config.enabled_strategies,
                self._profile.automation_engine_available,
            )
            logger.warning("%s", failure)
            return SolveResult.failed(failure, _elapsed_ms(start))

        logger.info(
            "Starting solve on %s with %d strategies",
            self._profile.platform,
            len(strategies),
        )
        token = active_config.set(config)
        try:
            report = await run_cascade(strategies, challenge, config.timeout_ms)
        finally:
            active_config.reset(token)
        elapsed = _elapsed_ms(start)

        if report.solution is not None:
            solution = report.solution
            logger.info(
                "Challenge solved in %dms via %s (%s)",
                elapsed,
                report.winner.strategy,
                solution.method,
            )
            if not solution.verified:
                logger.warning(
                    "Token from %s is unverified: it is shaped like a "
                    "widget response but was not computed by the real "
                    "proof-of-work algorithm",
                    solution.method,
                )
            return SolveResult.succeeded(
                solution,
                elapsed,
                form_fields=form_fields(solution.token, challenge),
                attempts=report.attempts,
            )

        failure = AllStrategiesFailed(len(report.attempts), report.last_error)
        logger.warning("Challenge solving failed: %s", failure)
        return SolveResult.failed(failure, elapsed, attempts=report.attempts)
