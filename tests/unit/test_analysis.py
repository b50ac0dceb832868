"""Tests for analysis data models."""

from conftest import make_issue

from gitlab_change_advisor.models.analysis import (
    AnalysisResult,
    ChangeType,
    PatternDomain,
    PipelineStatus,
    StageStatus,
    Suggestion,
)
from gitlab_change_advisor.models.issue import ScoredCandidate


class TestSuggestion:
    """Test Suggestion dataclass."""

    def test_to_dict(self):
        suggestion = Suggestion(
            type=PatternDomain.JSP,
            change_type=ChangeType.TEMPLATE_UPDATE,
            title="Template Update",
            description="Update pano:grid usage in status_body.jsp",
            specific_changes=('<pano:grid name="g">',),
            related_files=("web/status_body.jsp",),
            source_url="https://gitlab.example.com/acme/app/-/merge_requests/5",
        )

        assert suggestion.to_dict() == {
            "type": "JSP",
            "changeType": "TEMPLATE_UPDATE",
            "title": "Template Update",
            "description": "Update pano:grid usage in status_body.jsp",
            "specificChanges": ['<pano:grid name="g">'],
            "relatedFiles": ["web/status_body.jsp"],
            "sourceUrl": "https://gitlab.example.com/acme/app/-/merge_requests/5",
        }


class TestPipelineStatus:
    """Test PipelineStatus dataclass."""

    def test_all_stages_start_pending(self):
        status = PipelineStatus()
        assert status.similar_issues is StageStatus.PENDING
        assert status.merge_requests is StageStatus.PENDING
        assert status.suggestions is StageStatus.PENDING

    def test_to_dict(self):
        status = PipelineStatus(
            similar_issues=StageStatus.COMPLETED,
            merge_requests=StageStatus.FAILED,
        )
        assert status.to_dict() == {
            "similarIssues": "completed",
            "mergeRequests": "failed",
            "suggestions": "pending",
        }


class TestAnalysisResult:
    """Test AnalysisResult dataclass."""

    def test_empty_result(self):
        data = AnalysisResult().to_dict()

        assert data["similarIssues"] == []
        assert data["mergeRequests"] == []
        assert data["suggestions"] == []
        assert data["errors"] == []
        assert data["warnings"] == []

    def test_similarity_is_rounded(self):
        candidate = ScoredCandidate(
            issue=make_issue(7, "Fix status grid", labels=("sql",)),
            similarity=2 / 3,
            breakdown={"title": 2 / 3},
        )

        data = AnalysisResult(similar_issues=(candidate,)).to_dict()

        entry = data["similarIssues"][0]
        assert entry["similarity"] == 0.6667
        assert entry["breakdown"] == {"title": 0.6667}
        assert entry["labels"] == ["sql"]
        assert entry["state"] == "closed"
