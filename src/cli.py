"""Run one activity check and print the snapshot.

Usage:
    uv run python -m src.cli
    uv run python -m src.cli alice bob --hours 48 --json
"""

import argparse
import asyncio
import json
import logging
import sys
import time

from src.activity.tracker import RosterError, check_activity, snapshot_status, status_message
from src.config import get_settings, parse_roster
from src.observability.metrics import CHECK_DURATION, CHECKS_TOTAL
from src.report.formatter import format_snapshot_markdown, snapshot_to_dict

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    try:
        hours = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from exc
    if hours <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive number of hours, got {hours}")
    return hours


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Check recent GitHub activity for a team roster.")
    parser.add_argument(
        "identities",
        nargs="*",
        help="GitHub logins to check (default: ACTIVITY_ROSTER from the environment)",
    )
    parser.add_argument("--hours", type=_positive_int, default=None, help="Lookback window in hours")
    parser.add_argument("--json", action="store_true", help="Print the snapshot as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    return parser


async def run(args: argparse.Namespace) -> int:
    """Run the check described by ``args`` and print it. Returns the exit status."""
    settings = get_settings()
    roster = args.identities or parse_roster(settings.activity_roster)

    start = time.monotonic()
    try:
        snapshot = await check_activity(roster, lookback_hours=args.hours)
    except RosterError as e:
        CHECKS_TOTAL.labels(trigger="cli", status="error").inc()
        print(f"Invalid roster: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        CHECKS_TOTAL.labels(trigger="cli", status="error").inc()
        logger.debug("Activity check failed", exc_info=True)
        print(f"Failed to check activity: {e}", file=sys.stderr)
        return 1

    CHECKS_TOTAL.labels(trigger="cli", status=snapshot_status(snapshot).value).inc()
    CHECK_DURATION.observe(time.monotonic() - start)

    if args.json:
        print(json.dumps(snapshot_to_dict(snapshot), indent=2))
    else:
        print(format_snapshot_markdown(snapshot, title=f"{settings.github_repository} activity"))

    message = status_message(snapshot)
    if message:
        print(f"Warning: {message}", file=sys.stderr)
    return 0


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
