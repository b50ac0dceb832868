"""Core business logic components.

This module exports the main business logic classes:
- IssueAdvisor: Runs the search, fetch and suggestion pipeline for one issue
- IssueSearchOrchestrator: Finds and ranks similar closed issues
- SimilarityScorer: Scores a candidate issue against the source issue
- ChangePatternMatcher: Detects known change shapes in diffs
- SuggestionGenerator: Turns detected changes into suggested edits
"""

from gitlab_change_advisor.core.advisor import (
    IssueAdvisor,
    PartialFetchFailure,
    ValidationError,
    create_advisor,
)
from gitlab_change_advisor.core.issue_search import IssueSearchOrchestrator, SearchFailure
from gitlab_change_advisor.core.pattern_matcher import ChangePatternMatcher, DomainRule
from gitlab_change_advisor.core.similarity import ScoringWeights, SimilarityScorer
from gitlab_change_advisor.core.suggestions import SuggestionContext, SuggestionGenerator

__all__ = [
    "ChangePatternMatcher",
    "DomainRule",
    "IssueAdvisor",
    "IssueSearchOrchestrator",
    "PartialFetchFailure",
    "ScoringWeights",
    "SearchFailure",
    "SimilarityScorer",
    "SuggestionContext",
    "SuggestionGenerator",
    "ValidationError",
    "create_advisor",
]
