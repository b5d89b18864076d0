"""FastAPI backend for the activity tracker.

Exposes on-demand activity checks and the most recent snapshot over HTTP.
The app owns the in-flight guard: only one check runs at a time, and a
failed check leaves the previous snapshot in place.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field

from src.activity.models import ActivityRecord, ActivityWindow, Snapshot, SnapshotStatus
from src.activity.source import build_github_client, check_github_health
from src.activity.tracker import RosterError, check_activity, snapshot_status, status_message
from src.config import get_settings, parse_roster
from src.observability.metrics import (
    APP_INFO,
    CHECK_DURATION,
    CHECKS_TOTAL,
    COMPONENT_HEALTHY,
    LAST_CHECK_TIMESTAMP,
    REQUEST_DURATION,
    REQUESTS_TOTAL,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class CheckRequest(BaseModel):
    """Request body for POST /activity/check."""

    identities: list[str] | None = None
    lookback_hours: int | None = Field(default=None, gt=0)


class SnapshotResponse(BaseModel):
    """Response body for GET /activity and POST /activity/check."""

    status: SnapshotStatus
    message: str | None
    partial: bool
    captured_at: datetime
    window: ActivityWindow | None
    records: list[ActivityRecord]


class ComponentHealth(BaseModel):
    """Health status of a single dependency."""

    name: str
    status: str
    detail: str | None = None


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: str
    repository: str
    components: list[ComponentHealth]


def _snapshot_response(snapshot: Snapshot) -> SnapshotResponse:
    return SnapshotResponse(
        status=snapshot_status(snapshot),
        message=status_message(snapshot),
        partial=snapshot.partial,
        captured_at=snapshot.captured_at,
        window=snapshot.window,
        records=list(snapshot.records),
    )


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialise snapshot state at startup."""
    settings = get_settings()
    APP_INFO.info({"version": "0.1.0", "repository": settings.github_repository})

    app.state.snapshot = None
    app.state.check_lock = asyncio.Lock()
    logger.info(
        "Activity tracker ready for %s (%d identities)",
        settings.github_repository,
        len(parse_roster(settings.activity_roster)),
    )
    yield
    logger.info("Shutting down activity tracker")


app = FastAPI(title="Team Activity Tracker", lifespan=lifespan)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics in exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/activity", response_model=SnapshotResponse)
async def latest_activity() -> SnapshotResponse:
    """Return the most recent snapshot."""
    snapshot: Snapshot | None = app.state.snapshot
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No activity check has run yet")
    return _snapshot_response(snapshot)


@app.post("/activity/check", response_model=SnapshotResponse)
async def run_check(request: CheckRequest | None = None) -> SnapshotResponse:
    """Run a new activity check and store its snapshot."""
    lock: asyncio.Lock = app.state.check_lock
    if lock.locked():
        REQUESTS_TOTAL.labels(endpoint="/activity/check", status="conflict").inc()
        raise HTTPException(status_code=409, detail="An activity check is already in progress")

    settings = get_settings()
    if request is not None and request.identities is not None:
        roster = request.identities
    else:
        roster = parse_roster(settings.activity_roster)
    lookback_hours = request.lookback_hours if request else None

    async with lock:
        start = time.monotonic()
        try:
            snapshot = await check_activity(roster, lookback_hours=lookback_hours)
        except RosterError as exc:
            duration = time.monotonic() - start
            CHECKS_TOTAL.labels(trigger="api", status="error").inc()
            REQUESTS_TOTAL.labels(endpoint="/activity/check", status="error").inc()
            REQUEST_DURATION.labels(endpoint="/activity/check").observe(duration)
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception as exc:
            duration = time.monotonic() - start
            CHECKS_TOTAL.labels(trigger="api", status="error").inc()
            REQUESTS_TOTAL.labels(endpoint="/activity/check", status="error").inc()
            REQUEST_DURATION.labels(endpoint="/activity/check").observe(duration)
            logger.exception("Activity check failed")
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        duration = time.monotonic() - start
        app.state.snapshot = snapshot

    status = snapshot_status(snapshot)
    CHECKS_TOTAL.labels(trigger="api", status=status.value).inc()
    CHECK_DURATION.observe(duration)
    LAST_CHECK_TIMESTAMP.set(snapshot.captured_at.timestamp())
    REQUESTS_TOTAL.labels(endpoint="/activity/check", status="success").inc()
    REQUEST_DURATION.labels(endpoint="/activity/check").observe(duration)

    return _snapshot_response(snapshot)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Check reachability of the GitHub API."""
    settings = get_settings()
    components: list[ComponentHealth] = []

    async with build_github_client(settings) as client:
        detail = await check_github_health(client)
    if detail is None:
        components.append(ComponentHealth(name="github", status="healthy"))
    else:
        components.append(ComponentHealth(name="github", status="unhealthy", detail=detail))

    for comp in components:
        COMPONENT_HEALTHY.labels(component=comp.name).set(1.0 if comp.status == "healthy" else 0.0)

    overall = "healthy" if all(c.status == "healthy" for c in components) else "unhealthy"
    return HealthResponse(status=overall, repository=settings.github_repository, components=components)
