"""Render activity snapshots as markdown text or JSON-ready dicts."""

from datetime import UTC, datetime

from src.activity.models import ActivityRecord, Snapshot, SnapshotStatus
from src.activity.tracker import snapshot_status, status_message

DEFAULT_TITLE = "Team Activity"

_STATUS_LABELS: dict[SnapshotStatus, str] = {
    SnapshotStatus.ALL_OK: "All identities checked",
    SnapshotStatus.PARTIAL_FAILURE: "Partial failure",
    SnapshotStatus.EMPTY: "Empty",
}


def _format_plain_table(
    headers: list[str],
    rows: list[list[str]],
    right_align: set[int] | None = None,
) -> str:
    """Format a plain-text table with aligned columns (no pipe characters).

    Args:
        headers: Column header strings.
        rows: List of rows, each a list of cell strings.
        right_align: Set of column indices (0-based) to right-align.

    Returns:
        Multi-line string with padded columns separated by two spaces.
    """
    right_align = right_align or set()
    if not rows:
        return ""
    all_data = [headers, *rows]
    col_widths = [max(len(row[i]) for row in all_data) for i in range(len(headers))]

    def fmt_row(cells: list[str]) -> str:
        parts: list[str] = []
        for i, cell in enumerate(cells):
            width = col_widths[i]
            parts.append(cell.rjust(width) if i in right_align else cell.ljust(width))
        return "  ".join(parts).rstrip()

    lines = [fmt_row(headers)]
    lines.append("  ".join("-" * w for w in col_widths))
    for row in rows:
        lines.append(fmt_row(row))
    return "\n".join(lines)


def _format_time(value: datetime) -> str:
    return value.astimezone(UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


def record_state(record: ActivityRecord) -> str:
    if record.failed:
        return "failed"
    return "active" if record.is_active else "inactive"


def record_detail(record: ActivityRecord) -> str:
    """One-line description of a record, e.g. ``Commits: 2  Issues: 1``."""
    if record.failed:
        return "Failed to fetch data"
    if not record.is_active:
        return "No activity"
    parts: list[str] = []
    if record.commit_count > 0:
        parts.append(f"Commits: {record.commit_count}")
    if record.issue_count > 0:
        parts.append(f"Issues: {record.issue_count}")
    return "  ".join(parts)


def format_snapshot_markdown(snapshot: Snapshot, title: str = DEFAULT_TITLE) -> str:
    """Render a snapshot as a markdown report with a plain aligned table."""
    lines: list[str] = []
    lines.append(f"# {title}")
    lines.append("")
    lines.append(f"**Last checked:** {_format_time(snapshot.captured_at)}")
    if snapshot.window is not None:
        lines.append(f"**Since:** {_format_time(snapshot.window.since)}")
    lines.append(f"**Status:** {_STATUS_LABELS[snapshot_status(snapshot)]}")
    lines.append("")

    message = status_message(snapshot)
    if message:
        lines.append(f"*{message}*")
        lines.append("")

    if snapshot.records:
        rows = [
            [
                r.identity,
                record_state(r),
                "-" if r.failed else str(r.commit_count),
                "-" if r.failed else str(r.issue_count),
                record_detail(r),
            ]
            for r in snapshot.records
        ]
        lines.append(
            _format_plain_table(
                ["Identity", "State", "Commits", "Issues", "Detail"],
                rows,
                right_align={2, 3},
            )
        )
        active = sum(1 for r in snapshot.records if r.is_active)
        lines.append("")
        lines.append(f"{active} of {len(snapshot.records)} identities active.")
    return "\n".join(lines)


def snapshot_to_dict(snapshot: Snapshot) -> dict[str, object]:
    """JSON-ready dict of a snapshot including its derived status and message."""
    data = snapshot.model_dump(mode="json")
    data["status"] = snapshot_status(snapshot).value
    data["message"] = status_message(snapshot)
    return data
