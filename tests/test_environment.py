"""Tests for environment profiling."""

import dataclasses

import pytest

from frcsolve._environment import (
    VERCEL_CHROMIUM,
    EnvironmentProfiler,
    Platform,
)


def _profile(environ, engine=True, exists=None):
    return EnvironmentProfiler(
        environ=environ,
        engine_check=lambda: engine,
        path_exists=exists or (lambda path: True),
    ).profile()


# ---------------------------------------------------------------------------
# Mode
# ---------------------------------------------------------------------------


class TestMode:
    def test_development(self):
        p = _profile({"FRCSOLVE_ENV": "development"})
        assert p.dev_mode is True
        assert p.prod_mode is False
        assert p.platform is Platform.DEVELOPMENT

    def test_production(self):
        p = _profile({"FRCSOLVE_ENV": "production"})
        assert p.prod_mode is True
        assert p.dev_mode is False
        assert p.platform is Platform.SERVER

    def test_case_insensitive(self):
        assert _profile({"FRCSOLVE_ENV": "Production"}).prod_mode is True

    def test_unset(self):
        p = _profile({})
        assert not p.dev_mode
        assert not p.prod_mode
        assert p.platform is Platform.SERVER

    def test_modes_never_both_true(self):
        for value in ("development", "production", "staging", ""):
            p = _profile({"FRCSOLVE_ENV": value})
            assert not (p.dev_mode and p.prod_mode)


# ---------------------------------------------------------------------------
# Platform / serverless
# ---------------------------------------------------------------------------


class TestPlatform:
    def test_vercel(self):
        p = _profile({"VERCEL": "1"})
        assert p.serverless is True
        assert p.platform is Platform.VERCEL

    def test_netlify(self):
        p = _profile({"NETLIFY": "true"})
        assert p.serverless is True
        assert p.platform is Platform.NETLIFY

    def test_lambda(self):
        p = _profile({"AWS_LAMBDA_FUNCTION_NAME": "fn"})
        assert p.platform is Platform.AWS_LAMBDA
        assert p.serverless is True

    def test_cloudflare(self):
        p = _profile({"CF_PAGES": "1"})
        assert p.platform is Platform.CLOUDFLARE

    def test_gcf_is_serverless_without_platform_tag(self):
        p = _profile({"FUNCTION_NAME": "fn"})
        assert p.serverless is True
        assert p.platform is Platform.SERVER

    def test_platform_precedence(self):
        p = _profile({"NETLIFY": "1", "VERCEL": "1"})
        assert p.platform is Platform.VERCEL

    def test_serverless_platform_beats_dev_mode(self):
        p = _profile({"FRCSOLVE_ENV": "development", "NETLIFY": "1"})
        assert p.dev_mode is True
        assert p.platform is Platform.NETLIFY

    def test_empty_value_ignored(self):
        assert _profile({"VERCEL": ""}).serverless is False


# ---------------------------------------------------------------------------
# Automation engine availability
# ---------------------------------------------------------------------------


class TestAutomationAvailability:
    def test_available_on_server(self):
        assert _profile({}).automation_engine_available is True

    def test_engine_missing(self):
        assert _profile({}, engine=False).automation_engine_available is False

    def test_serverless_without_executable(self):
        p = _profile({"NETLIFY": "1"})
        assert p.browser_executable is None
        assert p.automation_engine_available is False

    def test_vercel_default_executable(self):
        seen = []

        def exists(path):
            seen.append(path)
            return True

        p = _profile({"VERCEL": "1"}, exists=exists)
        assert p.browser_executable == VERCEL_CHROMIUM
        assert seen == [VERCEL_CHROMIUM]
        assert p.automation_engine_available is True

    def test_configured_executable_missing(self):
        p = _profile(
            {"CHROME_PATH": "/opt/chrome"}, exists=lambda path: False
        )
        assert p.browser_executable == "/opt/chrome"
        assert p.automation_engine_available is False

    def test_chrome_path_beats_frcsolve_path(self):
        p = _profile(
            {"CHROME_PATH": "/a", "FRCSOLVE_BROWSER_PATH": "/b"}
        )
        assert p.browser_executable == "/a"

    def test_frcsolve_browser_path(self):
        p = _profile({"FRCSOLVE_BROWSER_PATH": "/b"})
        assert p.browser_executable == "/b"


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


class TestCaching:
    def test_profile_computed_once(self):
        environ = {"FRCSOLVE_ENV": "production"}
        checks = []

        def check():
            checks.append(1)
            return True

        profiler = EnvironmentProfiler(environ=environ, engine_check=check)
        first = profiler.profile()
        environ["FRCSOLVE_ENV"] = "development"
        environ["VERCEL"] = "1"
        second = profiler.profile()

        assert first is second
        assert second.prod_mode is True
        assert second.serverless is False
        assert len(checks) == 1

    def test_profile_immutable(self):
        p = _profile({})
        with pytest.raises(dataclasses.FrozenInstanceError):
            p.serverless = True
