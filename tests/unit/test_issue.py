"""Tests for issue and merge request data models."""

from dataclasses import FrozenInstanceError

import pytest
from conftest import make_issue, make_merge_request

from gitlab_change_advisor.models.issue import (
    IssueState,
    ScoredCandidate,
    SearchMode,
    SearchQuery,
    SourceIssue,
)
from gitlab_change_advisor.models.merge_request import ChangeRecord, ResolvedMergeRequest


class TestIssue:
    """Test Issue dataclass."""

    def test_create_issue(self):
        issue = make_issue(7, "Fix status grid", iid=17, labels=("sql",))

        assert issue.id == 7
        assert issue.iid == 17
        assert issue.project_id == 42
        assert issue.labels == ("sql",)
        assert issue.state is IssueState.CLOSED

    def test_issue_is_immutable(self):
        issue = make_issue(7, "Fix status grid")
        with pytest.raises(FrozenInstanceError):
            issue.title = "Changed"  # type: ignore[misc]

    def test_to_dict(self):
        issue = make_issue(7, "Fix status grid", iid=17, labels=("sql",))

        assert issue.to_dict() == {
            "id": 7,
            "iid": 17,
            "projectId": 42,
            "title": "Fix status grid",
            "labels": ["sql"],
            "state": "closed",
            "webUrl": "https://gitlab.example.com/acme/app/-/issues/17",
        }


class TestSourceIssue:
    """Test SourceIssue dataclass."""

    def test_defaults(self):
        source = SourceIssue(id="123", title="Update grid")
        assert source.description == ""
        assert source.labels == ()


class TestSearchQuery:
    """Test SearchQuery dataclass."""

    def test_queries_are_hashable(self):
        query = SearchQuery(terms=("grid",), mode=SearchMode.TERM_DISJUNCTION, strategy="terms")
        assert {query: 1}[query] == 1

    def test_search_modes(self):
        assert {mode.value for mode in SearchMode} == {
            "exact_phrase",
            "term_disjunction",
            "label_filtered",
        }


class TestScoredCandidate:
    """Test ScoredCandidate dataclass."""

    def test_breakdown_defaults_to_empty(self):
        candidate = ScoredCandidate(issue=make_issue(1, "Grid"), similarity=0.5)
        assert candidate.breakdown == {}


class TestChangeRecord:
    """Test ChangeRecord paths."""

    def test_modified_file(self):
        change = ChangeRecord(old_path="a.sql", new_path="a.sql", diff="+x")
        assert change.path == "a.sql"
        assert change.paths == ("a.sql",)

    def test_renamed_file(self):
        change = ChangeRecord(old_path="old.sql", new_path="new.sql", diff="")
        assert change.path == "new.sql"
        assert change.paths == ("new.sql", "old.sql")

    def test_deleted_file(self):
        change = ChangeRecord(old_path="gone.sql", new_path="", diff="-x")
        assert change.path == "gone.sql"
        assert change.paths == ("gone.sql",)

    def test_no_paths(self):
        change = ChangeRecord(old_path="", new_path="", diff="")
        assert change.path == ""
        assert change.paths == ()


class TestResolvedMergeRequest:
    """Test ResolvedMergeRequest dataclass."""

    def test_create(self):
        resolved = ResolvedMergeRequest(
            issue=make_issue(7, "Grid"),
            merge_request=make_merge_request(5),
            changes=(ChangeRecord(old_path="a.sql", new_path="a.sql", diff=""),),
        )
        assert resolved.merge_request.iid == 5
        assert resolved.merge_request.web_url.endswith("/merge_requests/5")
        assert len(resolved.changes) == 1
