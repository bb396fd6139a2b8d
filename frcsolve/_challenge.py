"""Challenge extraction for FriendlyCaptcha widgets.

Pure logic, no I/O. Scans page markup for the widget and pulls the
parameters the solving strategies need.

Rule order is intentional: every field has its own ordered table and
the first rule that matches wins. Data attributes come first because
they are what the widget itself reads; script configuration and
generic ``initCaptcha(...)`` calls are progressively weaker signals.
"""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger("frcsolve")

SOLUTION_FIELD = "frc-captcha-solution"
SITE_KEY_FIELD = "frc-captcha-sitekey"

DEFAULT_START_MODE = "auto"

# Substrings that identify the widget or its protocol. Matched
# case-insensitively.
INDICATORS = (
    "friendly-captcha",
    "frc-captcha",
    "FriendlyCaptcha",
    "data-sitekey",
    "puzzle-endpoint",
    "captcha-widget",
    "data-fc-sitekey",
    "c-friendlycaptcha",
    "initCaptcha",
    "Friendly Captcha",
)
_INDICATORS_LOWER = tuple(i.lower() for i in INDICATORS)


@dataclass(frozen=True)
class Challenge:
    """Parameters identifying one widget instance on a page."""

    site_key: str
    puzzle_endpoint: str | None = None
    difficulty: int | None = None
    lang: str | None = None
    start_mode: str | None = None

    def __post_init__(self):
        if not self.site_key:
            raise ValueError("site_key must be a non-empty string")
        if self.difficulty is not None and self.difficulty <= 0:
            raise ValueError(
                f"difficulty must be positive, got {self.difficulty}"
            )


@dataclass(frozen=True)
class ExtractionRule:
    """One (pattern, field) entry of an extraction table."""

    field: str
    pattern: re.Pattern

    def match(self, markup: str) -> str | None:
        m = self.pattern.search(markup)
        if m and m.group(1):
            return m.group(1)
        return None


def _rule(field: str, pattern: str) -> ExtractionRule:
    return ExtractionRule(field, re.compile(pattern, re.IGNORECASE))


SITE_KEY_RULES = (
    # Standard data attributes
    _rule("site_key", r"data-sitekey=[\"']([^\"']+)[\"']"),
    _rule("site_key", r"data-fc-sitekey=[\"']([^\"']+)[\"']"),
    # Script-based configuration
    _rule("site_key", r"sitekey:\s*[\"']([^\"']+)[\"']"),
    _rule("site_key", r"fc-sitekey:\s*[\"']([^\"']+)[\"']"),
    # JSON-ish blobs
    _rule("site_key", r"\"sitekey\":\s*\"([^\"]+)\""),
    _rule("site_key", r"'sitekey':\s*'([^']+)'"),
    # Generic init calls
    _rule("site_key", r"initCaptcha\([^,]+,\s*['\"]([^'\"]+)['\"]\)"),
    _rule(
        "site_key",
        r"window\..*\.initCaptcha\([^,]+,\s*['\"]([^'\"]+)['\"]\)",
    ),
)

PUZZLE_ENDPOINT_RULES = (
    _rule("puzzle_endpoint", r"data-puzzle-endpoint=[\"']([^\"']+)[\"']"),
    _rule("puzzle_endpoint", r"puzzleEndpoint:\s*[\"']([^\"']+)[\"']"),
)

DIFFICULTY_RULES = (
    # At most nine digits; longer values are treated as absent.
    _rule("difficulty", r"data-difficulty=[\"'](\d{1,9})[\"']"),
    _rule("difficulty", r"difficulty:\s*(\d{1,9})(?!\d)"),
)

LANG_RULES = (
    _rule("lang", r"data-lang=[\"']([^\"']+)[\"']"),
    _rule("lang", r"lang:\s*[\"']([^\"']+)[\"']"),
)

START_MODE_RULES = (
    _rule("start_mode", r"data-start=[\"']([^\"']+)[\"']"),
    _rule("start_mode", r"start:\s*[\"']([^\"']+)[\"']"),
)


def first_match(
    markup: str, rules: tuple[ExtractionRule, ...]
) -> str | None:
    """Evaluate rules top to bottom and return the first captured value."""
    for rule in rules:
        value = rule.match(markup)
        if value is not None:
            return value
    return None


def contains_challenge(markup: str) -> bool:
    """Check whether markup carries any widget indicator."""
    lowered = markup.lower()
    return any(i in lowered for i in _INDICATORS_LOWER)


def extract(markup: str) -> Challenge | None:
    """Extract a Challenge from page markup.

    Returns None when no site key rule matches. Optional fields are
    left as None when none of their rules match; start_mode is never
    defaulted here (the widget page renderer does that).
    """
    site_key = first_match(markup, SITE_KEY_RULES)
    if not site_key:
        logger.debug("No site key found in markup")
        return None

    difficulty = None
    raw_difficulty = first_match(markup, DIFFICULTY_RULES)
    if raw_difficulty is not None and int(raw_difficulty) > 0:
        difficulty = int(raw_difficulty)

    challenge = Challenge(
        site_key=site_key,
        puzzle_endpoint=first_match(markup, PUZZLE_ENDPOINT_RULES),
        difficulty=difficulty,
        lang=first_match(markup, LANG_RULES),
        start_mode=first_match(markup, START_MODE_RULES),
    )
    logger.debug("Challenge extracted: %s", describe_challenge(challenge))
    return challenge


def describe_challenge(challenge: Challenge) -> dict:
    """Log-safe summary of a challenge (site key truncated)."""
    site_key = challenge.site_key
    if len(site_key) > 20:
        site_key = site_key[:20] + "..."
    return {
        "site_key": site_key,
        "puzzle_endpoint": challenge.puzzle_endpoint,
        "difficulty": challenge.difficulty,
        "lang": challenge.lang,
        "start_mode": challenge.start_mode,
    }


def form_fields(token: str, challenge: Challenge) -> tuple[tuple[str, str], ...]:
    """Wire form fields for submitting a solved widget."""
    return (
        (SOLUTION_FIELD, token),
        (SITE_KEY_FIELD, challenge.site_key),
    )
