"""Shared mock objects and factories for frcsolve tests."""

import asyncio
import json

from frcsolve._config import ResourceLimits, SolveMethod, SolverConfig
from frcsolve._cascade import Strategy
from frcsolve._environment import EnvironmentProfile, Platform
from frcsolve._http import DEFAULT_CONNECT_TIMEOUT, DEFAULT_HEADERS, DEFAULT_TIMEOUT
from frcsolve._result import (
    AutomationDiagnostics,
    ProtocolDiagnostics,
    SimulationDiagnostics,
    Solution,
)

# ---------------------------------------------------------------------------
# Mock rnet types
# ---------------------------------------------------------------------------


class MockStatus:
    def __init__(self, code: int):
        self._code = code

    def as_int(self) -> int:
        return self._code


class MockHeaderMap:
    """Mock rnet HeaderMap with bytes keys and bytes values.

    keys() returns unique bytes keys, get_all() every value for a key.
    """

    def __init__(self, data: dict[str, str] | None = None):
        self._raw: dict[bytes, list[bytes]] = {}
        for k, v in (data or {}).items():
            bk = k.lower().encode("ascii")
            self._raw.setdefault(bk, []).append(v.encode("utf-8"))

    def keys(self):
        return list(self._raw.keys())

    def get_all(self, key):
        if isinstance(key, str):
            key = key.lower().encode("ascii")
        return list(self._raw.get(key, []))


class AsyncMockResponse:
    def __init__(
        self,
        status_code: int,
        headers: dict[str, str] | None = None,
        body: str = "",
    ):
        self.status = MockStatus(status_code)
        self.headers = MockHeaderMap(headers)
        self._body = body

    async def text(self):
        return self._body


def json_response(payload, status_code: int = 200) -> AsyncMockResponse:
    return AsyncMockResponse(
        status_code,
        {"Content-Type": "application/json"},
        json.dumps(payload),
    )


class AsyncMockClient:
    """Async mock rnet client returning responses from a sequence.

    The last entry repeats once the sequence runs out. Exceptions in
    the sequence are raised instead of returned.
    """

    def __init__(self, responses: list[AsyncMockResponse | Exception]):
        self._responses = responses
        self._index = 0
        self.request_count = 0
        self.last_kwargs: dict = {}
        self.request_log: list[tuple] = []

    async def request(self, method, url, **kwargs):
        self.last_kwargs = kwargs
        resp = self._responses[min(self._index, len(self._responses) - 1)]
        self._index += 1
        self.request_count += 1
        self.request_log.append((method, url, kwargs))
        if isinstance(resp, Exception):
            raise resp
        return resp


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_http_client(responses, max_retries: int = 3):
    """Create an HttpClient wired to an AsyncMockClient."""
    from frcsolve._http import HttpClient

    client = HttpClient.__new__(HttpClient)
    client.max_retries = max_retries
    client.headers = dict(DEFAULT_HEADERS)
    client.connect_timeout = DEFAULT_CONNECT_TIMEOUT
    client.timeout = DEFAULT_TIMEOUT
    mock = AsyncMockClient(responses)
    client._client = mock
    return client, mock


def make_profile(**overrides) -> EnvironmentProfile:
    values = {
        "dev_mode": False,
        "prod_mode": False,
        "serverless": False,
        "platform": Platform.SERVER,
        "automation_engine_available": True,
        "browser_executable": None,
    }
    values.update(overrides)
    return EnvironmentProfile(**values)


def make_config(**overrides) -> SolverConfig:
    values = {
        "timeout_ms": 1000,
        "max_retries": 0,
        "enabled_strategies": (
            SolveMethod.AUTOMATION,
            SolveMethod.PROTOCOL_FALLBACK,
            SolveMethod.SIMULATION,
        ),
        "anti_detection": False,
        "resource_limits": ResourceLimits(1024, 90),
    }
    values.update(overrides)
    return SolverConfig(**values)


def make_solution(
    method: SolveMethod = SolveMethod.SIMULATION, token: str = "tok.abc.1"
) -> Solution:
    if method is SolveMethod.AUTOMATION:
        diagnostics = AutomationDiagnostics(sub_strategy="direct-widget")
    elif method is SolveMethod.PROTOCOL_FALLBACK:
        diagnostics = ProtocolDiagnostics(
            puzzle_url="https://puzzle.test/p",
            difficulty=1000,
            target="0",
            iterations=1,
            converged=True,
            nonce=0,
        )
    else:
        diagnostics = SimulationDiagnostics(delay_ms=0, difficulty=1, lang="en")
    return Solution(token=token, method=method, diagnostics=diagnostics)


# ---------------------------------------------------------------------------
# Scripted strategies
# ---------------------------------------------------------------------------


class SucceedingStrategy(Strategy):
    """Returns a fixed solution, optionally after a delay."""

    def __init__(
        self,
        name: str = "ok",
        method: SolveMethod = SolveMethod.SIMULATION,
        token: str = "tok.abc.1",
        delay: float = 0.0,
    ):
        self.name = name
        self.method = method
        self._token = token
        self._delay = delay
        self.calls = 0

    async def attempt(self, challenge):
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        return make_solution(self.method, self._token)


class FailingStrategy(Strategy):
    """Raises the given exception on every attempt."""

    def __init__(
        self,
        name: str = "broken",
        method: SolveMethod = SolveMethod.SIMULATION,
        exc: BaseException | None = None,
    ):
        self.name = name
        self.method = method
        self._exc = exc or RuntimeError("boom")
        self.calls = 0

    async def attempt(self, challenge):
        self.calls += 1
        raise self._exc


class HangingStrategy(Strategy):
    """Never settles on its own; records whether it was cancelled."""

    def __init__(
        self, name: str = "hang", method: SolveMethod = SolveMethod.SIMULATION
    ):
        self.name = name
        self.method = method
        self.calls = 0
        self.cancelled = False

    async def attempt(self, challenge):
        self.calls += 1
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


class ReturningStrategy(Strategy):
    """Returns an arbitrary value instead of a Solution."""

    def __init__(self, value, name: str = "odd"):
        self.name = name
        self._value = value

    async def attempt(self, challenge):
        return self._value
