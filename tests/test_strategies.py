"""Tests for the protocol-fallback and simulation strategies."""

import json
from unittest.mock import patch

import pytest

from frcsolve._challenge import Challenge
from frcsolve._config import SolveMethod
from frcsolve._errors import ConnectionFailed, StrategyExecutionError
from frcsolve._result import ProtocolDiagnostics, SimulationDiagnostics
from frcsolve._strategies import (
    DEFAULT_PUZZLE_ENDPOINT,
    ProtocolFallbackStrategy,
    SimulationStrategy,
    puzzle_url,
    simple_hash,
)
from tests.conftest import AsyncMockResponse, json_response, make_http_client

# ---------------------------------------------------------------------------
# simple_hash
# ---------------------------------------------------------------------------


class TestSimpleHash:
    def test_known_values(self):
        assert simple_hash("") == "0"
        assert simple_hash("a") == "61"
        assert simple_hash("ab") == "c21"

    def test_wraps_to_signed_32_bit(self):
        # Long inputs overflow; result still fits in 8 hex digits.
        value = simple_hash("x" * 200)
        assert len(value) <= 8
        assert int(value, 16) <= 0x80000000

    def test_deterministic(self):
        assert simple_hash("puzzle42") == simple_hash("puzzle42")


# ---------------------------------------------------------------------------
# puzzle_url
# ---------------------------------------------------------------------------


class TestPuzzleUrl:
    def test_explicit_endpoint(self):
        c = Challenge(site_key="k", puzzle_endpoint="https://p.test/puzzle")
        assert puzzle_url(c) == "https://p.test/puzzle"

    def test_default_endpoint_quotes_key(self):
        c = Challenge(site_key="a b&c")
        assert puzzle_url(c) == f"{DEFAULT_PUZZLE_ENDPOINT}?sitekey=a%20b%26c"


# ---------------------------------------------------------------------------
# ProtocolFallbackStrategy
# ---------------------------------------------------------------------------


class TestProtocolFallback:
    @pytest.mark.asyncio
    async def test_token_shape(self):
        http, mock = make_http_client(
            [json_response({"data": "PUZZLEDATA0123456789"})], max_retries=0
        )
        strategy = ProtocolFallbackStrategy(http)
        with patch("frcsolve._strategies._now_ms", return_value=1700000000000):
            solution = await strategy.attempt(Challenge(site_key="k"))

        prefix, work, ts = solution.token.split(".")
        assert prefix == "PUZZLEDATA012345"
        assert ts == "1700000000000"
        assert work
        assert solution.method is SolveMethod.PROTOCOL_FALLBACK
        assert not solution.verified
        assert isinstance(solution.diagnostics, ProtocolDiagnostics)

    @pytest.mark.asyncio
    async def test_default_difficulty(self):
        http, _ = make_http_client([json_response({"data": "abc"})], max_retries=0)
        solution = await ProtocolFallbackStrategy(http, max_iterations=10).attempt(
            Challenge(site_key="k")
        )
        assert solution.diagnostics.difficulty == 1000
        assert solution.diagnostics.target == "0"

    @pytest.mark.asyncio
    async def test_empty_target_converges_immediately(self):
        http, _ = make_http_client(
            [json_response({"data": "abc", "difficulty": 500})], max_retries=0
        )
        solution = await ProtocolFallbackStrategy(http).attempt(
            Challenge(site_key="k")
        )
        diag = solution.diagnostics
        assert diag.target == ""
        assert diag.converged
        assert diag.nonce == 0
        assert diag.iterations == 1
        assert solution.token.split(".")[1] == simple_hash("abc0")

    @pytest.mark.asyncio
    async def test_nested_puzzle_payload(self):
        http, _ = make_http_client(
            [json_response({"data": {"puzzle": "nested-puzzle"}})], max_retries=0
        )
        solution = await ProtocolFallbackStrategy(http).attempt(
            Challenge(site_key="k")
        )
        assert solution.token.startswith("nested-puzzle.")

    @pytest.mark.asyncio
    async def test_payload_difficulty_wins(self):
        http, _ = make_http_client(
            [json_response({"data": "p", "difficulty": 2000})], max_retries=0
        )
        solution = await ProtocolFallbackStrategy(http).attempt(
            Challenge(site_key="k", difficulty=5000)
        )
        assert solution.diagnostics.difficulty == 2000
        assert solution.diagnostics.target == "00"

    @pytest.mark.asyncio
    async def test_challenge_difficulty_used(self):
        http, _ = make_http_client([json_response({"data": "p"})], max_retries=0)
        solution = await ProtocolFallbackStrategy(http).attempt(
            Challenge(site_key="k", difficulty=3000)
        )
        assert solution.diagnostics.target == "000"

    @pytest.mark.asyncio
    async def test_iteration_ceiling_uses_time_seeded_hash(self):
        http, _ = make_http_client(
            [json_response({"data": "p", "difficulty": 9000})], max_retries=0
        )
        strategy = ProtocolFallbackStrategy(http, max_iterations=50)
        with patch("frcsolve._strategies._now_ms", return_value=42):
            solution = await strategy.attempt(Challenge(site_key="k"))
        diag = solution.diagnostics
        assert not diag.converged
        assert diag.nonce is None
        assert diag.iterations == 50
        assert solution.token == f"p.{simple_hash('p42')}.42"

    @pytest.mark.asyncio
    async def test_fetches_explicit_endpoint(self):
        http, mock = make_http_client([json_response({"data": "p"})], max_retries=0)
        await ProtocolFallbackStrategy(http).attempt(
            Challenge(site_key="k", puzzle_endpoint="https://p.test/puzzle")
        )
        _, url, kwargs = mock.request_log[0]
        assert url == "https://p.test/puzzle"
        assert kwargs["headers"]["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_http_error(self):
        http, _ = make_http_client([AsyncMockResponse(403)], max_retries=0)
        with pytest.raises(StrategyExecutionError, match="HTTP 403"):
            await ProtocolFallbackStrategy(http).attempt(Challenge(site_key="k"))

    @pytest.mark.asyncio
    async def test_not_json(self):
        http, _ = make_http_client(
            [AsyncMockResponse(200, body="<html>")], max_retries=0
        )
        with pytest.raises(StrategyExecutionError, match="not JSON"):
            await ProtocolFallbackStrategy(http).attempt(Challenge(site_key="k"))

    @pytest.mark.asyncio
    async def test_missing_puzzle(self):
        http, _ = make_http_client([json_response({"data": ""})], max_retries=0)
        with pytest.raises(StrategyExecutionError, match="no puzzle data"):
            await ProtocolFallbackStrategy(http).attempt(Challenge(site_key="k"))

    @pytest.mark.asyncio
    async def test_network_failure_propagates(self):
        http, _ = make_http_client([OSError("refused")], max_retries=0)
        with pytest.raises(ConnectionFailed):
            await ProtocolFallbackStrategy(http).attempt(Challenge(site_key="k"))


# ---------------------------------------------------------------------------
# SimulationStrategy
# ---------------------------------------------------------------------------


class TestSimulation:
    @pytest.mark.asyncio
    async def test_token_shape(self):
        challenge = Challenge(site_key="FCMGEMUD2KTDSQ5HXYZ", lang="de")
        with patch("frcsolve._strategies._now_ms", return_value=1234):
            solution = await SimulationStrategy(delay=0).attempt(challenge)

        widget = {
            "sitekey": "FCMGEMUD2KTDSQ5HXYZ",
            "timestamp": 1234,
            "difficulty": 1,
            "lang": "de",
        }
        expected = simple_hash(json.dumps(widget, separators=(",", ":")))
        assert solution.token == f"FCMGEMUD2KTDSQ5H.{expected}.1234"
        assert solution.method is SolveMethod.SIMULATION
        assert not solution.verified

    @pytest.mark.asyncio
    async def test_defaults(self):
        solution = await SimulationStrategy(delay=0).attempt(Challenge(site_key="k"))
        diag = solution.diagnostics
        assert isinstance(diag, SimulationDiagnostics)
        assert diag.difficulty == 1
        assert diag.lang == "en"
        assert diag.delay_ms == 0

    @pytest.mark.asyncio
    @patch("asyncio.sleep")
    async def test_delay(self, mock_sleep):
        solution = await SimulationStrategy(delay=2.0).attempt(
            Challenge(site_key="k")
        )
        mock_sleep.assert_called_once_with(2.0)
        assert solution.diagnostics.delay_ms == 2000

    @pytest.mark.asyncio
    async def test_never_needs_network(self):
        # No HTTP client at all; still succeeds.
        solution = await SimulationStrategy(delay=0).attempt(
            Challenge(site_key="k", difficulty=7)
        )
        assert solution.diagnostics.difficulty == 7
