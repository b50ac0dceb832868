"""Abstract interface for issue tracker integrations."""

from typing import Protocol

from ..models.issue import Issue, SearchQuery
from ..models.merge_request import ChangeRecord, MergeRequest


class IssueStore(Protocol):
    """Abstract interface for the external issue tracker.

    The core only ever sees validated models: adapters must coerce raw API
    payloads into Issue, MergeRequest and ChangeRecord before returning.
    """

    async def search_issues(
        self,
        query: SearchQuery,
        scope: str,
    ) -> list[Issue]:
        """
        Search for issues matching the query.

        Args:
            query: Search terms and how to combine them
            scope: Group identifier to search within (id or full path)

        Returns:
            Matching issues in store order

        Raises:
            NetworkError: If the store cannot be reached
            AuthenticationError: If not authorized
        """
        ...

    async def list_merge_requests_for_issue(
        self,
        project_id: int,
        issue_iid: int,
    ) -> list[MergeRequest]:
        """
        List merge requests that resolved an issue.

        Args:
            project_id: Project the issue belongs to
            issue_iid: Project-scoped issue number

        Returns:
            Linked merge requests; empty if the issue does not exist
        """
        ...

    async def get_merge_request_changes(
        self,
        project_id: int,
        merge_request_iid: int,
    ) -> list[ChangeRecord]:
        """
        Fetch the per-file diffs of a merge request.

        Args:
            project_id: Project the merge request belongs to
            merge_request_iid: Project-scoped merge request number

        Returns:
            One change record per touched file
        """
        ...
