"""Integration tests for the FastAPI backend.

Uses TestClient with a mocked check or mocked GitHub HTTP calls; no real services needed.
"""

import asyncio
from collections.abc import AsyncIterator, Iterator
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from src.activity.models import ActivityRecord, Snapshot
from src.activity.tracker import RosterError, compute_window

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)
BASE = "https://api.github.test"

pytestmark = pytest.mark.integration


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def client(mock_settings: object) -> Iterator[TestClient]:  # noqa: ARG001 (mock_settings activates patches)
    """Create a TestClient with lifespan state initialised."""
    from src.api.main import app

    with TestClient(app) as tc:
        yield tc


@pytest.fixture
async def async_client(mock_settings: object) -> AsyncIterator[httpx.AsyncClient]:  # noqa: ARG001
    """AsyncClient over ASGITransport so several requests can be in flight at once."""
    from src.api.main import app, lifespan

    async with lifespan(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://tracker.test") as ac:
            yield ac


def _snapshot(*records: ActivityRecord) -> Snapshot:
    return Snapshot(records=records, captured_at=NOW, window=compute_window(NOW, lookback_hours=24))


# ---------------------------------------------------------------------------
# GET /activity
# ---------------------------------------------------------------------------


class TestLatestActivity:
    def test_404_before_first_check(self, client: TestClient) -> None:
        resp = client.get("/activity")
        assert resp.status_code == 404

    def test_returns_last_snapshot(self, client: TestClient) -> None:
        snapshot = _snapshot(ActivityRecord(identity="alice", commit_count=1))
        with patch("src.api.main.check_activity", new_callable=AsyncMock, return_value=snapshot):
            client.post("/activity/check")

        resp = client.get("/activity")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "all_ok"
        assert body["records"][0]["identity"] == "alice"
        assert body["records"][0]["is_active"] is True


# ---------------------------------------------------------------------------
# POST /activity/check
# ---------------------------------------------------------------------------


class TestRunCheck:
    def test_uses_configured_roster(self, client: TestClient) -> None:
        snapshot = _snapshot(ActivityRecord(identity="alice"))
        with patch("src.api.main.check_activity", new_callable=AsyncMock, return_value=snapshot) as mock_check:
            resp = client.post("/activity/check")

        assert resp.status_code == 200
        mock_check.assert_awaited_once_with(["alice", "bob", "carol"], lookback_hours=None)

    def test_request_overrides_roster_and_lookback(self, client: TestClient) -> None:
        snapshot = _snapshot(ActivityRecord(identity="dave"))
        with patch("src.api.main.check_activity", new_callable=AsyncMock, return_value=snapshot) as mock_check:
            resp = client.post("/activity/check", json={"identities": ["dave"], "lookback_hours": 48})

        assert resp.status_code == 200
        mock_check.assert_awaited_once_with(["dave"], lookback_hours=48)

    def test_partial_snapshot_returns_200_with_message(self, client: TestClient) -> None:
        snapshot = _snapshot(ActivityRecord(identity="alice", commit_count=2), ActivityRecord.failure("bob"))
        with patch("src.api.main.check_activity", new_callable=AsyncMock, return_value=snapshot):
            resp = client.post("/activity/check")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "partial_failure"
        assert body["partial"] is True
        assert body["message"] == "Some data could not be fetched. Results may be incomplete."
        assert body["records"][1] == {
            "identity": "bob",
            "commit_count": 0,
            "issue_count": 0,
            "failed": True,
            "is_active": False,
        }

    def test_roster_error_returns_400(self, client: TestClient) -> None:
        with patch("src.api.main.check_activity", new_callable=AsyncMock, side_effect=RosterError("roster is empty")):
            resp = client.post("/activity/check", json={"identities": []})

        assert resp.status_code == 400
        assert "roster is empty" in resp.json()["detail"]

    def test_failure_returns_500_and_keeps_previous_snapshot(self, client: TestClient) -> None:
        first = _snapshot(ActivityRecord(identity="alice", commit_count=1))
        with patch("src.api.main.check_activity", new_callable=AsyncMock, return_value=first):
            client.post("/activity/check")

        with patch("src.api.main.check_activity", new_callable=AsyncMock, side_effect=RuntimeError("exploded")):
            resp = client.post("/activity/check")

        assert resp.status_code == 500
        assert "exploded" in resp.json()["detail"]
        latest = client.get("/activity").json()
        assert latest["records"][0]["identity"] == "alice"

    def test_invalid_lookback_returns_422(self, client: TestClient) -> None:
        resp = client.post("/activity/check", json={"lookback_hours": 0})
        assert resp.status_code == 422

    @respx.mock
    def test_real_check_with_mocked_github(self, client: TestClient) -> None:
        respx.get(f"{BASE}/repos/herbie-fp/odyssey/commits").mock(
            return_value=httpx.Response(200, json=[{"sha": "abc"}])
        )
        respx.get(f"{BASE}/repos/herbie-fp/odyssey/issues", params__contains={"creator": "alice"}).mock(
            return_value=httpx.Response(200, json=[])
        )
        respx.get(f"{BASE}/repos/herbie-fp/odyssey/issues", params__contains={"creator": "bob"}).mock(
            side_effect=httpx.ConnectError("connection refused")
        )

        resp = client.post("/activity/check", json={"identities": ["alice", "bob"]})

        assert resp.status_code == 200
        body = resp.json()
        assert [r["identity"] for r in body["records"]] == ["alice", "bob"]
        assert body["records"][0]["commit_count"] == 1
        assert body["records"][1]["failed"] is True
        assert body["status"] == "partial_failure"


# ---------------------------------------------------------------------------
# In-flight guard
# ---------------------------------------------------------------------------


class TestInFlightGuard:
    async def test_second_check_while_running_returns_409(self, async_client: httpx.AsyncClient) -> None:
        started = asyncio.Event()
        release = asyncio.Event()
        calls: list[list[str]] = []

        async def slow_check(roster: list[str], **_: object) -> Snapshot:
            calls.append(roster)
            started.set()
            await release.wait()
            return _snapshot(ActivityRecord(identity="alice", commit_count=1))

        with patch("src.api.main.check_activity", new=slow_check):
            first = asyncio.create_task(async_client.post("/activity/check"))
            await asyncio.wait_for(started.wait(), timeout=5)

            second = await async_client.post("/activity/check")
            assert second.status_code == 409
            assert "already in progress" in second.json()["detail"]

            release.set()
            first_resp = await asyncio.wait_for(first, timeout=5)

            assert first_resp.status_code == 200
            assert len(calls) == 1

            # guard is released once the running check finishes
            third = await async_client.post("/activity/check")
            assert third.status_code == 200
            assert len(calls) == 2

    async def test_guard_released_after_roster_error(self, async_client: httpx.AsyncClient) -> None:
        with patch("src.api.main.check_activity", new_callable=AsyncMock, side_effect=RosterError("roster is empty")):
            resp = await async_client.post("/activity/check", json={"identities": []})
        assert resp.status_code == 400

        snapshot = _snapshot(ActivityRecord(identity="alice"))
        with patch("src.api.main.check_activity", new_callable=AsyncMock, return_value=snapshot):
            resp = await async_client.post("/activity/check")
        assert resp.status_code == 200

    async def test_guard_released_after_unexpected_failure(self, async_client: httpx.AsyncClient) -> None:
        with patch("src.api.main.check_activity", new_callable=AsyncMock, side_effect=RuntimeError("exploded")):
            resp = await async_client.post("/activity/check")
        assert resp.status_code == 500

        snapshot = _snapshot(ActivityRecord(identity="alice"))
        with patch("src.api.main.check_activity", new_callable=AsyncMock, return_value=snapshot):
            resp = await async_client.post("/activity/check")
        assert resp.status_code == 200
        assert (await async_client.get("/activity")).json()["records"][0]["identity"] == "alice"


# ---------------------------------------------------------------------------
# GET /health and /metrics
# ---------------------------------------------------------------------------


class TestHealth:
    @respx.mock
    def test_healthy(self, client: TestClient) -> None:
        respx.get(f"{BASE}/rate_limit").mock(return_value=httpx.Response(200, json={"resources": {}}))

        resp = client.get("/health")
        body: dict[str, Any] = resp.json()
        assert resp.status_code == 200
        assert body["status"] == "healthy"
        assert body["repository"] == "herbie-fp/odyssey"
        assert body["components"] == [{"name": "github", "status": "healthy", "detail": None}]

    @respx.mock
    def test_unhealthy(self, client: TestClient) -> None:
        respx.get(f"{BASE}/rate_limit").mock(side_effect=httpx.ConnectError("connection refused"))

        body = client.get("/health").json()
        assert body["status"] == "unhealthy"
        assert body["components"][0]["detail"] == "connection refused"


class TestMetrics:
    def test_exposition_format(self, client: TestClient) -> None:
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "activity_tracker_checks_total" in resp.text
