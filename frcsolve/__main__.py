"""Solve a widget from the command line.

Usage:
    python -m frcsolve https://example.com/signup
    python -m frcsolve --html page.html
    python -m frcsolve --sitekey FCMG... [--puzzle-endpoint URL]
    python -m frcsolve URL --submit https://example.com/signup -f email=a@b.c
    python -m frcsolve --diagnose [--check-browser]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from frcsolve._config import SolveMethod
from frcsolve._solver import CaptchaSolver


def _parse_field(value: str) -> tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {value!r}")
    name, val = value.split("=", 1)
    return name, val


def _positive_ms(value: str) -> int:
    try:
        ms = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"expected milliseconds, got {value!r}"
        ) from None
    if ms <= 0:
        raise argparse.ArgumentTypeError(f"timeout must be positive, got {ms}")
    return ms


def _strategy_list(value: str) -> tuple[SolveMethod, ...]:
    names = [s.strip() for s in value.split(",") if s.strip()]
    valid = ", ".join(m.value for m in SolveMethod)
    methods = []
    for name in names:
        try:
            method = SolveMethod(name)
        except ValueError:
            raise argparse.ArgumentTypeError(
                f"unknown strategy {name!r} (choose from {valid})"
            ) from None
        if method in methods:
            raise argparse.ArgumentTypeError(f"strategy {name!r} listed twice")
        methods.append(method)
    return tuple(methods)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="frcsolve", description="FriendlyCaptcha strategy-cascade solver"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("url", nargs="?", help="Page URL to fetch and solve")
    source.add_argument("--html", type=Path, help="Local HTML file to solve")
    source.add_argument("--sitekey", help="Solve a bare site key")
    source.add_argument(
        "--diagnose", action="store_true", help="Print deployment diagnostics"
    )
    parser.add_argument(
        "--check-browser", action="store_true",
        help="With --diagnose, also launch and close the browser",
    )
    parser.add_argument("--puzzle-endpoint", help="Puzzle endpoint for --sitekey")
    parser.add_argument(
        "--timeout", type=_positive_ms, help="Per-strategy timeout in milliseconds"
    )
    parser.add_argument(
        "--strategies",
        type=_strategy_list,
        help="Comma-separated strategy order, e.g. automation,protocol-fallback",
    )
    parser.add_argument(
        "--headful", action="store_true", help="Show the browser window"
    )
    parser.add_argument(
        "--simulation-delay", type=float, default=2.0,
        help="Simulation strategy delay in seconds",
    )
    parser.add_argument("--submit", metavar="FORM_URL", help="POST the solved form here")
    parser.add_argument(
        "-f", "--field", type=_parse_field, action="append", default=[],
        metavar="NAME=VALUE", help="Extra form field for --submit (repeatable)",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0)
    return parser


def _result_json(result) -> dict:
    out = {
        "outcome": result.outcome.value,
        "elapsed_ms": result.elapsed_ms,
        "attempts": [
            {
                "index": a.index,
                "strategy": a.strategy,
                "elapsed_ms": a.elapsed_ms,
                "error": str(a.error) if a.error else None,
            }
            for a in result.attempts
        ],
    }
    if result.ok:
        out["method"] = result.solution.method.value
        out["verified"] = result.solution.verified
        out["form_fields"] = dict(result.form_fields)
    else:
        out["error"] = result.error
    return out


async def _run(args) -> int:
    async with CaptchaSolver(
        headless=not args.headful, simulation_delay=args.simulation_delay
    ) as solver:
        if args.diagnose:
            report = await solver.diagnose(check_browser=args.check_browser)
            print(json.dumps(report, indent=2, default=str))
            return 0

        changes = {}
        if args.timeout is not None:
            changes["timeout_ms"] = args.timeout
        if args.strategies is not None:
            changes["enabled_strategies"] = args.strategies
        config = solver.config.replace(**changes) if changes else None

        if args.html:
            markup = args.html.read_text(encoding="utf-8")
            result = await solver.solve_html(markup, config)
        elif args.sitekey:
            result = await solver.solve_site_key(
                args.sitekey, args.puzzle_endpoint, config
            )
        else:
            result = await solver.solve_url(args.url, config)

        report = _result_json(result)
        if result.ok and args.submit:
            resp = await solver.submit_form(args.submit, result, dict(args.field))
            report["submit_status"] = resp.status_code
        print(json.dumps(report, indent=2))
        return 0 if result.ok else 1


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
