"""Non-browser strategies: protocol fallback and simulation.

Neither of these implements FriendlyCaptcha's real proof-of-work. Both
emit tokens in the widget's ``<prefix>.<work>.<timestamp>`` shape so
the surrounding form plumbing can be exercised without a browser, but
a verifying server will not accept them. Their solutions report
``verified=False``.
"""

import asyncio
import json
import logging
import time
from urllib.parse import quote

from frcsolve._challenge import Challenge
from frcsolve._cascade import Strategy
from frcsolve._config import SolveMethod
from frcsolve._errors import StrategyExecutionError
from frcsolve._http import HttpClient
from frcsolve._result import ProtocolDiagnostics, SimulationDiagnostics, Solution

logger = logging.getLogger("frcsolve")

DEFAULT_PUZZLE_ENDPOINT = "https://api.friendlycaptcha.com/api/v1/puzzle"
DEFAULT_PUZZLE_DIFFICULTY = 1000
POW_MAX_ITERATIONS = 10_000
# Yield to the event loop this often during the nonce search so a
# timeout's cancellation can land.
_YIELD_EVERY = 500


def simple_hash(text: str) -> str:
    """32-bit rolling hash (h = h * 31 + c), hex of its absolute value.

    Non-cryptographic. Arithmetic wraps like a signed 32-bit integer.
    """
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 1 << 32
    return format(abs(h), "x")


def _now_ms() -> int:
    return int(time.time() * 1000)


def puzzle_url(challenge: Challenge) -> str:
    """Puzzle URL for a challenge: explicit endpoint or the public API."""
    if challenge.puzzle_endpoint:
        return challenge.puzzle_endpoint
    return f"{DEFAULT_PUZZLE_ENDPOINT}?sitekey={quote(challenge.site_key, safe='')}"


def _parse_puzzle(payload) -> str | None:
    """Pull the puzzle string out of a puzzle response payload.

    Accepts ``{"data": "<puzzle>"}`` and ``{"data": {"puzzle": "..."}}``.
    """
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if isinstance(data, dict):
        data = data.get("puzzle")
    if isinstance(data, str) and data:
        return data
    return None


def _positive_int(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int) and value > 0:
        return value
    return None


class ProtocolFallbackStrategy(Strategy):
    """Fetch puzzle data over HTTP and synthesize a response heuristically.

    Runs a bounded nonce search for a hash with ``difficulty // 1000``
    leading zeros. If the search doesn't converge within
    POW_MAX_ITERATIONS, the work value is a time-seeded hash instead.
    """

    name = "protocol-fallback"
    method = SolveMethod.PROTOCOL_FALLBACK

    def __init__(
        self,
        http: HttpClient,
        max_iterations: int = POW_MAX_ITERATIONS,
    ):
        self._http = http
        self._max_iterations = max_iterations

    async def attempt(self, challenge: Challenge) -> Solution:
        started = time.monotonic()
        url = puzzle_url(challenge)
        logger.debug("Fetching puzzle from %s", url)

        resp = await self._http.get(url, headers={"Accept": "application/json"})
        if not resp.ok:
            raise StrategyExecutionError(
                self.name, f"Failed to fetch puzzle: HTTP {resp.status_code}"
            )
        try:
            payload = resp.json()
        except ValueError:
            raise StrategyExecutionError(
                self.name, "Puzzle response is not JSON"
            ) from None

        puzzle = _parse_puzzle(payload)
        if puzzle is None:
            raise StrategyExecutionError(
                self.name, "Puzzle response has no puzzle data"
            )

        difficulty = (
            _positive_int(payload.get("difficulty"))
            or challenge.difficulty
            or DEFAULT_PUZZLE_DIFFICULTY
        )
        target = "0" * (difficulty // 1000)
        work, nonce, iterations = await self._search(puzzle, target)
        timestamp = _now_ms()
        if work is None:
            logger.debug(
                "Nonce search hit %d iterations without a match, "
                "using time-seeded work value",
                iterations,
            )
            work = simple_hash(puzzle + str(timestamp))

        return Solution(
            token=f"{puzzle[:16]}.{work}.{timestamp}",
            method=self.method,
            elapsed_ms=int((time.monotonic() - started) * 1000),
            diagnostics=ProtocolDiagnostics(
                puzzle_url=url,
                difficulty=difficulty,
                target=target,
                iterations=iterations,
                converged=nonce is not None,
                nonce=nonce,
            ),
        )

    async def _search(
        self, puzzle: str, target: str
    ) -> tuple[str | None, int | None, int]:
        """Return (work, nonce, iterations); work is None if not found."""
        for nonce in range(self._max_iterations):
            if nonce and nonce % _YIELD_EVERY == 0:
                await asyncio.sleep(0)
            candidate = simple_hash(puzzle + str(nonce))
            if candidate.startswith(target):
                return candidate, nonce, nonce + 1
        return None, None, self._max_iterations


class SimulationStrategy(Strategy):
    """Last-resort strategy: fabricate a plausible token locally.

    Needs no network or browser, so the cascade always has something
    left to try. The delay stands in for a real solve's latency.
    """

    name = "simulation"
    method = SolveMethod.SIMULATION

    def __init__(self, delay: float = 2.0):
        self._delay = delay

    async def attempt(self, challenge: Challenge) -> Solution:
        started = time.monotonic()
        if self._delay > 0:
            await asyncio.sleep(self._delay)

        difficulty = challenge.difficulty or 1
        lang = challenge.lang or "en"
        timestamp = _now_ms()
        widget = {
            "sitekey": challenge.site_key,
            "timestamp": timestamp,
            "difficulty": difficulty,
            "lang": lang,
        }
        digest = simple_hash(json.dumps(widget, separators=(",", ":")))

        return Solution(
            token=f"{challenge.site_key[:16]}.{digest}.{timestamp}",
            method=self.method,
            elapsed_ms=int((time.monotonic() - started) * 1000),
            diagnostics=SimulationDiagnostics(
                delay_ms=int(self._delay * 1000),
                difficulty=difficulty,
                lang=lang,
            ),
        )
