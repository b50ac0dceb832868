"""Data models for GitLab issues and issue search."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class IssueState(Enum):
    """State of a GitLab issue."""

    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class Issue:
    """A GitLab issue snapshot, as returned by the issue store."""

    id: int
    iid: int
    project_id: int
    title: str
    description: str
    labels: tuple[str, ...]
    state: IssueState
    created_at: datetime
    web_url: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "iid": self.iid,
            "projectId": self.project_id,
            "title": self.title,
            "labels": list(self.labels),
            "state": self.state.value,
            "webUrl": self.web_url,
        }


@dataclass(frozen=True)
class SourceIssue:
    """The issue being analyzed, as supplied by the caller."""

    id: str
    title: str
    description: str = ""
    labels: tuple[str, ...] = ()


class SearchMode(Enum):
    """How the terms of a search query are combined."""

    EXACT_PHRASE = "exact_phrase"
    TERM_DISJUNCTION = "term_disjunction"
    LABEL_FILTERED = "label_filtered"


@dataclass(frozen=True)
class SearchQuery:
    """A single search strategy against the issue store."""

    terms: tuple[str, ...]
    mode: SearchMode
    strategy: str = ""


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate issue with its similarity to the source issue."""

    issue: Issue
    similarity: float  # 0.0 to 1.0
    breakdown: dict[str, float] = field(default_factory=dict)
