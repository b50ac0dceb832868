"""Data models and transfer objects."""

from .analysis import (
    AnalysisResult,
    ChangeType,
    MainMatch,
    PatternDomain,
    PatternMatch,
    PipelineStatus,
    RelatedMatch,
    StageStatus,
    Suggestion,
)
from .issue import Issue, IssueState, ScoredCandidate, SearchMode, SearchQuery, SourceIssue
from .merge_request import ChangeRecord, MergeRequest, ResolvedMergeRequest

__all__ = [
    # Issue models
    "IssueState",
    "Issue",
    "SourceIssue",
    "SearchMode",
    "SearchQuery",
    "ScoredCandidate",
    # Merge request models
    "MergeRequest",
    "ChangeRecord",
    "ResolvedMergeRequest",
    # Analysis models
    "PatternDomain",
    "ChangeType",
    "MainMatch",
    "RelatedMatch",
    "PatternMatch",
    "Suggestion",
    "StageStatus",
    "PipelineStatus",
    "AnalysisResult",
]
