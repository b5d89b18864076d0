"""Pydantic models for activity windows, per-identity records, and snapshots.

All models are frozen: a new check always produces a new Snapshot.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

Identity = str


class ActivityWindow(BaseModel):
    """Half-open time interval ``[since, until)`` shared by every query of one check."""

    model_config = ConfigDict(frozen=True)

    since: datetime
    until: datetime

    @model_validator(mode="after")
    def _check_order(self) -> "ActivityWindow":
        if self.since > self.until:
            raise ValueError("window start must not be after its end")
        return self


class ActivityRecord(BaseModel):
    """Activity counts for one identity.

    When ``failed`` is true the counts are zero by definition and must not be
    read as a genuine zero-activity measurement.
    """

    model_config = ConfigDict(frozen=True)

    identity: Identity
    commit_count: int = Field(default=0, ge=0)
    issue_count: int = Field(default=0, ge=0)
    failed: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_active(self) -> bool:
        return self.commit_count > 0 or self.issue_count > 0

    @model_validator(mode="after")
    def _failed_has_no_counts(self) -> "ActivityRecord":
        if self.failed and (self.commit_count or self.issue_count):
            raise ValueError("failed records must carry zero counts")
        return self

    @classmethod
    def failure(cls, identity: Identity) -> "ActivityRecord":
        return cls(identity=identity, commit_count=0, issue_count=0, failed=True)


class Snapshot(BaseModel):
    """Point-in-time activity report for a whole roster, in roster order."""

    model_config = ConfigDict(frozen=True)

    records: tuple[ActivityRecord, ...]
    captured_at: datetime
    window: ActivityWindow | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def partial(self) -> bool:
        return any(record.failed for record in self.records)


class SnapshotStatus(StrEnum):
    ALL_OK = "all_ok"
    PARTIAL_FAILURE = "partial_failure"
    EMPTY = "empty"
