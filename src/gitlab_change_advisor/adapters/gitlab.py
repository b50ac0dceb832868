"""GitLab issue store adapter over the REST v4 API.

This module implements the IssueStore protocol for GitLab using httpx.

Behaviour:
- Bearer token authentication, passed through unchanged
- Raw payloads coerced into Issue, MergeRequest and ChangeRecord on receipt
- Search results cached per (group, mode, terms) for a configurable TTL
- Exponential backoff on timeouts, network errors and rate limits
- Optional client-side throttling with a token bucket
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
import structlog
from cachetools import TTLCache

from ..models.issue import Issue, IssueState, SearchMode, SearchQuery
from ..models.merge_request import ChangeRecord, MergeRequest
from ..utils.async_helpers import (
    AuthenticationError,
    IssueStoreError,
    NetworkError,
    NotFoundError,
    RateLimiter,
    RateLimitError,
    create_retry,
)
from ..utils.logging import LogEventNames
from ..utils.security import SecretRedactor, SecurityError, validate_group_path

if TYPE_CHECKING:
    from ..config.schema import AdvisorConfig

log = structlog.get_logger()

SEARCH_CACHE_SIZE = 256


@dataclass(frozen=True)
class RateLimitInfo:
    """Rate limit headroom reported by GitLab response headers."""

    limit: int | None
    remaining: int | None
    reset_at: datetime | None = None

    @property
    def remaining_ratio(self) -> float | None:
        """Fraction of the limit still available, if known."""
        if not self.limit or self.remaining is None:
            return None
        return self.remaining / self.limit


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return default


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _parse_timestamp(value: Any) -> datetime:
    """Parse an ISO 8601 timestamp from the GitLab API."""
    if not isinstance(value, str) or not value:
        return datetime.now(UTC)

    try:
        # GitLab uses a Z suffix
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    except ValueError:
        return datetime.now(UTC)


def _parse_labels(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    labels = []
    for label in value:
        if isinstance(label, dict):
            label = label.get("name")
        if isinstance(label, str) and label:
            labels.append(label)
    return tuple(labels)


def parse_issue(data: dict[str, Any]) -> Issue:
    """Coerce a GitLab issue payload into an Issue."""
    state = IssueState.CLOSED if _as_str(data.get("state")).lower() == "closed" else IssueState.OPEN
    return Issue(
        id=_as_int(data.get("id")),
        iid=_as_int(data.get("iid")),
        project_id=_as_int(data.get("project_id")),
        title=_as_str(data.get("title")),
        description=_as_str(data.get("description")),
        labels=_parse_labels(data.get("labels")),
        state=state,
        created_at=_parse_timestamp(data.get("created_at")),
        web_url=_as_str(data.get("web_url")),
    )


def parse_merge_request(data: dict[str, Any]) -> MergeRequest:
    """Coerce a GitLab merge request payload into a MergeRequest."""
    return MergeRequest(
        id=_as_int(data.get("id")),
        iid=_as_int(data.get("iid")),
        project_id=_as_int(data.get("project_id")),
        title=_as_str(data.get("title")),
        description=_as_str(data.get("description")),
        web_url=_as_str(data.get("web_url")),
        state=_as_str(data.get("state")),
    )


def parse_change(data: dict[str, Any]) -> ChangeRecord:
    """Coerce one entry of a merge request's ``changes`` list."""
    return ChangeRecord(
        old_path=_as_str(data.get("old_path")),
        new_path=_as_str(data.get("new_path")),
        diff=_as_str(data.get("diff")),
    )


def _dict_entries(payload: Any) -> list[dict[str, Any]]:
    """Keep the dict entries of a list payload; anything else yields nothing."""
    if not isinstance(payload, list):
        return []
    return [entry for entry in payload if isinstance(entry, dict)]


class GitLabAdapter:
    """GitLab issue store implementing the IssueStore protocol.

    Example:
        async with GitLabAdapter(config) as gitlab:
            issues = await gitlab.search_issues(
                SearchQuery(terms=("grid", "view"), mode=SearchMode.TERM_DISJUNCTION),
                "8",
            )
    """

    def __init__(
        self,
        config: AdvisorConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        redactor: SecretRedactor | None = None,
    ) -> None:
        """Initialize the GitLab adapter.

        Args:
            config: Application configuration (gitlab, search and retry sections)
            transport: Optional httpx transport, used in place of the network
            redactor: Secret redactor for logged error bodies
        """
        self._gitlab = config.gitlab
        self._search = config.search
        self._redactor = redactor or SecretRedactor()

        self._client = httpx.AsyncClient(
            base_url=f"{self._gitlab.url}/api/v4",
            headers={
                "Authorization": f"Bearer {self._gitlab.token}",
                "Accept": "application/json",
            },
            timeout=self._gitlab.timeout,
            verify=self._gitlab.verify_ssl,
            transport=transport,
        )

        self._cache: TTLCache[tuple[str, str, tuple[str, ...]], tuple[Issue, ...]] | None = None
        if self._search.search_cache_ttl > 0:
            self._cache = TTLCache(maxsize=SEARCH_CACHE_SIZE, ttl=self._search.search_cache_ttl)

        self._limiter = (
            RateLimiter(rate=self._gitlab.requests_per_second)
            if self._gitlab.requests_per_second
            else None
        )

        self._retrying_send = create_retry(
            max_attempts=config.retry.max_attempts,
            min_wait=config.retry.initial_delay,
            max_wait=config.retry.max_delay,
            exponential_base=config.retry.exponential_base,
        )(self._send)

    async def __aenter__(self) -> GitLabAdapter:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # -------------------------------------------------------------------------
    # HTTP plumbing
    # -------------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one request and map error statuses to store errors.

        Transport errors propagate unchanged so the retry policy sees them.
        """
        if self._limiter is not None:
            await self._limiter.acquire()

        response = await self._client.request(method, path, params=params)
        if response.is_success:
            return response

        status = response.status_code
        message = self._redactor.redact(response.text[:200])
        log.warning(
            LogEventNames.GITLAB_REQUEST_ERROR,
            method=method,
            path=path,
            status=status,
        )

        if status == 429:
            retry_after = response.headers.get("Retry-After")
            log.warning(LogEventNames.RATE_LIMIT_HIT, path=path, retry_after=retry_after)
            raise RateLimitError(
                f"GitLab rate limit exceeded on {path}",
                retry_after=_as_int(retry_after) if retry_after else None,
            )
        if status in (401, 403):
            raise AuthenticationError(f"GitLab rejected the credential ({status}) on {path}")
        if status == 404:
            raise NotFoundError(f"GitLab resource not found: {path}")
        raise IssueStoreError(f"GitLab API error {status} on {path}: {message}")

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            return await self._retrying_send(method, path, params)
        except httpx.TransportError as e:
            log.warning(
                LogEventNames.GITLAB_REQUEST_ERROR,
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise NetworkError(f"Could not reach GitLab for {path}: {e}") from e

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._request("GET", path, params)
        try:
            return response.json()
        except ValueError as e:
            raise IssueStoreError(f"GitLab returned invalid JSON for {path}") from e

    # -------------------------------------------------------------------------
    # IssueStore protocol
    # -------------------------------------------------------------------------

    def _group_path(self, scope: str) -> str:
        if not validate_group_path(scope):
            raise SecurityError(f"Invalid group identifier: {scope}")
        return f"/groups/{quote(scope, safe='')}"

    def _search_requests(
        self, query: SearchQuery, scope: str
    ) -> list[tuple[str, dict[str, Any]]]:
        """Build the GitLab requests that together answer one query."""
        group = self._group_path(scope)
        base: dict[str, Any] = {
            "state": self._search.issue_state,
            "per_page": self._search.per_page,
        }

        if query.mode is SearchMode.EXACT_PHRASE:
            return [(f"{group}/issues", {**base, "search": " ".join(query.terms), "in": "title"})]
        if query.mode is SearchMode.TERM_DISJUNCTION:
            if self._gitlab.advanced_search:
                params = {**base, "scope": "issues", "search": " | ".join(query.terms)}
                return [(f"{group}/search", params)]
            # Basic search ANDs the words of a query, so OR is one request per term
            return [
                (f"{group}/search", {**base, "scope": "issues", "search": term})
                for term in query.terms
            ]
        if query.mode is SearchMode.LABEL_FILTERED:
            return [(f"{group}/issues", {**base, "labels": ",".join(query.terms)})]
        raise ValueError(f"Unsupported search mode: {query.mode}")

    async def _search_payload(self, path: str, params: dict[str, Any]) -> list[Issue]:
        payload = await self._get_json(path, params)
        return [parse_issue(entry) for entry in _dict_entries(payload)]

    async def search_issues(self, query: SearchQuery, scope: str) -> list[Issue]:
        """Search a group's issues.

        A term disjunction without advanced search issues one request per
        term; the results are merged in term order without duplicates.

        Args:
            query: Search terms and how to combine them
            scope: Group id or full path

        Returns:
            Matching issues in GitLab order

        Raises:
            SecurityError: If the group identifier is malformed
            IssueStoreError: If GitLab returns an error
        """
        cache_key = (scope, query.mode.value, query.terms)
        if self._cache is not None and cache_key in self._cache:
            log.debug(LogEventNames.CACHE_HIT, scope=scope, mode=query.mode.value)
            return list(self._cache[cache_key])

        requests = self._search_requests(query, scope)
        results = await asyncio.gather(
            *(self._search_payload(path, params) for path, params in requests),
            return_exceptions=True,
        )

        seen: set[int] = set()
        merged: list[Issue] = []
        for result in results:
            if isinstance(result, BaseException):
                raise result
            for issue in result:
                if issue.id not in seen:
                    seen.add(issue.id)
                    merged.append(issue)
        issues = tuple(merged)

        log.debug(
            "gitlab_search_complete",
            scope=scope,
            mode=query.mode.value,
            requests=len(requests),
            results_count=len(issues),
        )

        if self._cache is not None:
            self._cache[cache_key] = issues
        return list(issues)

    async def list_merge_requests_for_issue(
        self,
        project_id: int,
        issue_iid: int,
    ) -> list[MergeRequest]:
        """List the merge requests that closed an issue.

        Returns:
            Linked merge requests; empty if the issue does not exist
        """
        try:
            payload = await self._get_json(
                f"/projects/{project_id}/issues/{issue_iid}/closed_by"
            )
        except NotFoundError:
            log.debug("issue_not_found", project_id=project_id, issue_iid=issue_iid)
            return []
        return [parse_merge_request(entry) for entry in _dict_entries(payload)]

    async def get_merge_request_changes(
        self,
        project_id: int,
        merge_request_iid: int,
    ) -> list[ChangeRecord]:
        """Fetch the per-file diffs of a merge request."""
        payload = await self._get_json(
            f"/projects/{project_id}/merge_requests/{merge_request_iid}/changes"
        )
        changes = payload.get("changes") if isinstance(payload, dict) else None
        return [parse_change(entry) for entry in _dict_entries(changes)]

    # -------------------------------------------------------------------------
    # Issue lookup
    # -------------------------------------------------------------------------

    async def get_issue(self, issue_id: int) -> Issue:
        """Fetch a single issue by its global id.

        Raises:
            NotFoundError: If the issue does not exist or is not visible
            IssueStoreError: If GitLab returns an unexpected payload
        """
        payload = await self._get_json(f"/issues/{int(issue_id)}")
        if not isinstance(payload, dict):
            raise IssueStoreError(f"GitLab returned no issue for id {issue_id}")
        return parse_issue(payload)

    async def list_assigned_issues(self, username: str) -> list[Issue]:
        """List the open issues assigned to a user, across all projects."""
        if not username.strip():
            raise ValueError("username must not be empty")

        payload = await self._get_json(
            "/issues",
            {
                "assignee_username": username,
                "state": "opened",
                "scope": "all",
                "per_page": self._search.per_page,
            },
        )
        return [parse_issue(entry) for entry in _dict_entries(payload)]

    # -------------------------------------------------------------------------
    # Access and rate limit
    # -------------------------------------------------------------------------

    async def check_access(self) -> dict[str, Any]:
        """Verify the credential by fetching the current user.

        Returns:
            The user payload (username, id, ...)

        Raises:
            AuthenticationError: If the credential is rejected
        """
        payload = await self._get_json("/user")
        return payload if isinstance(payload, dict) else {}

    async def get_rate_limit(self) -> RateLimitInfo:
        """Read the rate limit headers of a lightweight request."""
        response = await self._request("GET", "/user")
        headers = response.headers

        limit = headers.get("RateLimit-Limit")
        remaining = headers.get("RateLimit-Remaining")
        reset = headers.get("RateLimit-Reset")

        return RateLimitInfo(
            limit=_as_int(limit) if limit is not None else None,
            remaining=_as_int(remaining) if remaining is not None else None,
            reset_at=datetime.fromtimestamp(_as_int(reset), UTC) if reset else None,
        )
