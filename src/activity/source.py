"""GitHub REST API client for per-identity commit and issue counts.

Each query fetches a single page and counts the items in it. Anything other
than a JSON list (transport error, non-2xx status, unparsable body, wrong
shape) is raised as ActivitySourceError so the caller can record the identity
as failed.
"""

import logging
from datetime import UTC, datetime
from typing import Protocol

import httpx

from src.config import Settings, get_settings
from src.observability.metrics import SOURCE_QUERIES_TOTAL

logger = logging.getLogger(__name__)

GITHUB_ACCEPT = "application/vnd.github+json"
GITHUB_API_VERSION = "2022-11-28"


class ActivitySourceError(Exception):
    """A single commit or issue query could not produce a count."""

    def __init__(self, identity: str, kind: str, reason: str) -> None:
        super().__init__(f"{kind} query for {identity} failed: {reason}")
        self.identity = identity
        self.kind = kind
        self.reason = reason


class ActivitySource(Protocol):
    async def get_commit_count(self, identity: str, since: datetime) -> int: ...

    async def get_issue_count(self, identity: str, since: datetime) -> int: ...


def format_since(since: datetime) -> str:
    """Format a datetime in UTC the way the GitHub API documents timestamps (naive values are UTC)."""
    if since.tzinfo is not None:
        since = since.astimezone(UTC)
    return since.strftime("%Y-%m-%dT%H:%M:%SZ")


def build_github_client(settings: Settings | None = None) -> httpx.AsyncClient:
    """Build an AsyncClient carrying the GitHub base URL, headers and timeout."""
    settings = settings or get_settings()
    headers = {
        "Accept": GITHUB_ACCEPT,
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
    }
    if settings.github_token:
        headers["Authorization"] = f"Bearer {settings.github_token}"
    return httpx.AsyncClient(
        base_url=settings.github_api_url,
        headers=headers,
        timeout=settings.github_timeout_seconds,
    )


class GitHubActivitySource:
    """ActivitySource backed by the commits and issues endpoints of one repository."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        repository: str | None = None,
        per_page: int | None = None,
    ) -> None:
        self._client = client
        if repository is None or per_page is None:
            settings = get_settings()
            repository = repository or settings.github_repository
            per_page = per_page if per_page is not None else settings.github_per_page
        self._repository = repository
        self._per_page = per_page

    async def get_commit_count(self, identity: str, since: datetime) -> int:
        return await self._count(
            "commits",
            identity,
            f"/repos/{self._repository}/commits",
            {"author": identity, "since": format_since(since)},
        )

    async def get_issue_count(self, identity: str, since: datetime) -> int:
        return await self._count(
            "issues",
            identity,
            f"/repos/{self._repository}/issues",
            {"creator": identity, "since": format_since(since)},
        )

    async def _count(self, kind: str, identity: str, path: str, params: dict[str, str]) -> int:
        params = {**params, "per_page": str(self._per_page)}
        logger.debug("GitHub %s query for %s: %s %s", kind, identity, path, params)
        try:
            resp = await self._client.get(path, params=params)
            _ = resp.raise_for_status()
            payload: object = resp.json()
        except httpx.HTTPStatusError as exc:
            SOURCE_QUERIES_TOTAL.labels(kind=kind, status="error").inc()
            raise ActivitySourceError(identity, kind, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            SOURCE_QUERIES_TOTAL.labels(kind=kind, status="error").inc()
            raise ActivitySourceError(identity, kind, f"{type(exc).__name__}: {exc}") from exc
        except ValueError as exc:
            SOURCE_QUERIES_TOTAL.labels(kind=kind, status="error").inc()
            raise ActivitySourceError(identity, kind, "response body is not valid JSON") from exc

        if not isinstance(payload, list):
            SOURCE_QUERIES_TOTAL.labels(kind=kind, status="error").inc()
            raise ActivitySourceError(identity, kind, f"expected a JSON list, got {type(payload).__name__}")

        SOURCE_QUERIES_TOTAL.labels(kind=kind, status="success").inc()
        return len(payload)


async def check_github_health(client: httpx.AsyncClient) -> str | None:
    """Probe the GitHub API. Returns None when reachable, else a short failure detail."""
    try:
        resp = await client.get("/rate_limit")
    except httpx.HTTPError as exc:
        return str(exc) or type(exc).__name__
    if resp.status_code != 200:
        return f"HTTP {resp.status_code}"
    return None
