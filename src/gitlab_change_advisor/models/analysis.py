"""Data models for change pattern analysis and suggestions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .issue import ScoredCandidate
from .merge_request import ResolvedMergeRequest


class PatternDomain(Enum):
    """Language domain a change pattern belongs to."""

    SQL = "SQL"
    JSP = "JSP"


class ChangeType(Enum):
    """Kind of change a domain rule detects."""

    VIEW_UPDATE = "VIEW_UPDATE"
    DROPDOWN_UPDATE = "DROPDOWN_UPDATE"
    TEMPLATE_UPDATE = "TEMPLATE_UPDATE"


@dataclass(frozen=True)
class MainMatch:
    """The primary pattern match of a domain rule."""

    full_text: str
    captured_groups: tuple[str, ...] = ()


@dataclass(frozen=True)
class RelatedMatch:
    """A secondary pattern found alongside a primary match."""

    full_text: str


@dataclass(frozen=True)
class PatternMatch:
    """A domain rule that fired on one file's diff."""

    domain: PatternDomain
    change_type: ChangeType
    main_match: MainMatch
    related_matches: tuple[RelatedMatch, ...] = ()
    file_path: str = ""


@dataclass(frozen=True)
class Suggestion:
    """A suggested edit derived from a historical change pattern."""

    type: PatternDomain
    change_type: ChangeType
    title: str
    description: str
    specific_changes: tuple[str, ...]
    related_files: tuple[str, ...] = ()
    source_url: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": self.type.value,
            "changeType": self.change_type.value,
            "title": self.title,
            "description": self.description,
            "specificChanges": list(self.specific_changes),
            "relatedFiles": list(self.related_files),
            "sourceUrl": self.source_url,
        }


class StageStatus(Enum):
    """Outcome of one pipeline stage."""

    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineStatus:
    """Per-stage status of an issue analysis."""

    similar_issues: StageStatus = StageStatus.PENDING
    merge_requests: StageStatus = StageStatus.PENDING
    suggestions: StageStatus = StageStatus.PENDING

    def to_dict(self) -> dict[str, str]:
        return {
            "similarIssues": self.similar_issues.value,
            "mergeRequests": self.merge_requests.value,
            "suggestions": self.suggestions.value,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Everything the advisor learned about one issue."""

    similar_issues: tuple[ScoredCandidate, ...] = ()
    merge_requests: tuple[ResolvedMergeRequest, ...] = ()
    suggestions: tuple[Suggestion, ...] = ()
    status: PipelineStatus = field(default_factory=PipelineStatus)
    errors: tuple[str, ...] = ()  # Total failures, shown to the caller
    warnings: tuple[str, ...] = ()  # Partial failures that were skipped

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "similarIssues": [
                {
                    **c.issue.to_dict(),
                    "similarity": round(c.similarity, 4),
                    "breakdown": {k: round(v, 4) for k, v in c.breakdown.items()},
                }
                for c in self.similar_issues
            ],
            "mergeRequests": [
                {
                    "issueId": mr.issue.id,
                    "id": mr.merge_request.id,
                    "iid": mr.merge_request.iid,
                    "projectId": mr.merge_request.project_id,
                    "title": mr.merge_request.title,
                    "webUrl": mr.merge_request.web_url,
                    "changedFiles": [change.path for change in mr.changes],
                }
                for mr in self.merge_requests
            ],
            "suggestions": [s.to_dict() for s in self.suggestions],
            "status": self.status.to_dict(),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }
