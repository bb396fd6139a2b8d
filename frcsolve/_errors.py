"""Typed exceptions for frcsolve."""


class CaptchaError(Exception):
    """Base exception for all frcsolve errors."""


class ExtractionFailed(CaptchaError):
    """No challenge could be extracted from the given markup."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Challenge extraction failed: {reason}")


class NoStrategiesAvailable(CaptchaError):
    """Nothing was left to try after environment gating."""

    def __init__(self, enabled: tuple = (), automation_available: bool = False):
        self.enabled = tuple(enabled)
        self.automation_available = automation_available
        names = ", ".join(str(m) for m in self.enabled) or "none"
        super().__init__(
            "No strategies attempted (0 attempts): enabled=[" + names + "], "
            f"automation engine available={automation_available}"
        )


class StrategyError(CaptchaError):
    """A single strategy attempt failed."""

    def __init__(self, strategy: str, message: str):
        self.strategy = strategy
        super().__init__(message)


class StrategyTimeout(StrategyError, TimeoutError):
    """A strategy attempt did not settle within its budget."""

    def __init__(self, strategy: str, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(strategy, f"timeout after {timeout_ms}ms")


class StrategyExecutionError(StrategyError):
    """A collaborator failed during an attempt.

    Network errors, missing page elements, script errors and malformed
    puzzle responses all end up here.
    """

    def __init__(self, strategy: str, reason: str):
        self.reason = reason
        super().__init__(strategy, reason)


class AllStrategiesFailed(CaptchaError):
    """Every selected strategy failed; carries the last individual error."""

    def __init__(self, attempts: int, last_error: str):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"All strategies failed. Last error: {last_error}")


class ConnectionFailed(CaptchaError):
    """Failed to establish a connection."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Connection failed to {url}: {reason}")


class HTTPStatusError(CaptchaError):
    """HTTP error raised by HttpResponse.raise_for_status()."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP {status_code} at {url}")
