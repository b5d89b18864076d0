"""Concurrent activity check across a roster of identities.

One query task per identity runs concurrently against the activity source.
Each task is wrapped so that a failing identity becomes a failed record
instead of an exception: a partial snapshot is always produced as long as the
roster itself is valid.
"""

import asyncio
import logging
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from src.activity.models import (
    ActivityRecord,
    ActivityWindow,
    Identity,
    Snapshot,
    SnapshotStatus,
)
from src.activity.source import ActivitySource, GitHubActivitySource, build_github_client
from src.config import get_settings
from src.observability.metrics import RECORDS_TOTAL

logger = logging.getLogger(__name__)

PARTIAL_FAILURE_MESSAGE = "Some data could not be fetched. Results may be incomplete."
EMPTY_MESSAGE = "No identities were checked."


class RosterError(ValueError):
    """The roster handed to check_activity is missing, empty or malformed."""


# ---------------------------------------------------------------------------
# Window
# ---------------------------------------------------------------------------


def compute_window(now: datetime | None = None, lookback_hours: int | None = None) -> ActivityWindow:
    """Build the trailing window ``[now - lookback, now)``.

    Args:
        now: End of the window. Defaults to the current UTC time; naive values
            are taken to be UTC.
        lookback_hours: Window length. Defaults to the configured lookback.
    """
    if lookback_hours is None:
        lookback_hours = get_settings().activity_lookback_hours
    if lookback_hours <= 0:
        raise ValueError(f"lookback_hours must be positive, got {lookback_hours}")
    until = now or datetime.now(UTC)
    if until.tzinfo is None:
        until = until.replace(tzinfo=UTC)
    until = until.astimezone(UTC)
    return ActivityWindow(since=until - timedelta(hours=lookback_hours), until=until)


# ---------------------------------------------------------------------------
# Per-identity query task
# ---------------------------------------------------------------------------


def _valid_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


async def query_identity(source: ActivitySource, identity: Identity, window: ActivityWindow) -> ActivityRecord:
    """Fetch commit and issue counts for one identity. Never raises on source failure."""
    results = await asyncio.gather(
        source.get_commit_count(identity, window.since),
        source.get_issue_count(identity, window.since),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException) and not isinstance(result, Exception):
            raise result

    commits, issues = results
    for kind, result in (("commits", commits), ("issues", issues)):
        if isinstance(result, Exception):
            logger.warning("Activity query failed for %s (%s): %s", identity, kind, result)
            RECORDS_TOTAL.labels(outcome="failed").inc()
            return ActivityRecord.failure(identity)
        if not _valid_count(result):
            logger.warning("Activity query for %s (%s) returned an invalid count: %r", identity, kind, result)
            RECORDS_TOTAL.labels(outcome="failed").inc()
            return ActivityRecord.failure(identity)

    record = ActivityRecord(identity=identity, commit_count=commits, issue_count=issues)  # type: ignore[arg-type]
    RECORDS_TOTAL.labels(outcome="active" if record.is_active else "inactive").inc()
    return record


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------


def _validate_roster(roster: Sequence[Identity] | None) -> list[Identity]:
    if roster is None:
        raise RosterError("roster is required")
    if isinstance(roster, str):
        raise RosterError("roster must be a sequence of identities, not a single string")
    identities = list(roster)
    if not identities:
        raise RosterError("roster is empty")
    for identity in identities:
        if not isinstance(identity, str) or not identity.strip():
            raise RosterError(f"invalid identity in roster: {identity!r}")
    return identities


async def _gather_records(
    source: ActivitySource, identities: list[Identity], window: ActivityWindow
) -> list[ActivityRecord]:
    # gather returns results in argument order, so records follow the roster
    return list(await asyncio.gather(*(query_identity(source, identity, window) for identity in identities)))


async def check_activity(
    roster: Sequence[Identity] | None,
    source: ActivitySource | None = None,
    *,
    now: datetime | None = None,
    lookback_hours: int | None = None,
) -> Snapshot:
    """Check every identity in the roster and return a new Snapshot.

    Args:
        roster: Identities to check, in display order. Duplicates are kept.
        source: Activity source to query. Defaults to the configured GitHub
            repository over a client that lives for this check only.
        now: End of the activity window. Defaults to the current time.
        lookback_hours: Window length. Defaults to the configured lookback.

    Returns:
        Snapshot with exactly one record per roster entry.

    Raises:
        RosterError: If the roster is missing, empty, or has blank entries.
    """
    identities = _validate_roster(roster)
    window = compute_window(now, lookback_hours)
    logger.info(
        "Checking activity for %d identities since %s",
        len(identities),
        window.since.isoformat(),
    )

    if source is None:
        async with build_github_client() as client:
            records = await _gather_records(GitHubActivitySource(client), identities, window)
    else:
        records = await _gather_records(source, identities, window)

    snapshot = Snapshot(records=tuple(records), captured_at=datetime.now(UTC), window=window)
    failed = sum(1 for r in snapshot.records if r.failed)
    active = sum(1 for r in snapshot.records if r.is_active)
    logger.info(
        "Activity check complete: %d active, %d inactive, %d failed",
        active,
        len(snapshot.records) - active - failed,
        failed,
    )
    return snapshot


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


def snapshot_status(snapshot: Snapshot) -> SnapshotStatus:
    """Overall status of a completed snapshot."""
    if not snapshot.records:
        return SnapshotStatus.EMPTY
    if snapshot.partial:
        return SnapshotStatus.PARTIAL_FAILURE
    return SnapshotStatus.ALL_OK


def status_message(snapshot: Snapshot) -> str | None:
    """Human-readable warning derived from the snapshot status, if any."""
    status = snapshot_status(snapshot)
    if status is SnapshotStatus.PARTIAL_FAILURE:
        return PARTIAL_FAILURE_MESSAGE
    if status is SnapshotStatus.EMPTY:
        return EMPTY_MESSAGE
    return None
