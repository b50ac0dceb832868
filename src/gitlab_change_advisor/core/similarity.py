"""Similarity scoring between a source issue and candidate issues.

The composite score is built from these signals:
1. Lexical match - share of source tokens found in the candidate title
2. Order proximity - how close shared tokens sit in both titles
3. Label overlap - Jaccard index of label sets, when both sides have labels
4. Keyword bonus - optional boost for shared domain vocabulary (off by default)

Title sub-score = lexical_weight * lexical + order_weight * order. With labels
on both sides the result is (1 - label_weight) * title + label_weight * jaccard.
The score is deterministic but not symmetric: order proximity is normalized
by the source token count.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import structlog
from structlog.typing import FilteringBoundLogger

from gitlab_change_advisor.core.text_normalizer import find_keywords, normalize

if TYPE_CHECKING:
    from gitlab_change_advisor.config.schema import ScoringConfig


class IssueText(Protocol):
    """Anything with a title, description and labels."""

    @property
    def title(self) -> str: ...

    @property
    def description(self) -> str: ...

    @property
    def labels(self) -> Sequence[str]: ...


@dataclass(frozen=True)
class ScoringWeights:
    """Weights of the composite similarity score."""

    lexical: float = 0.7
    order: float = 0.3
    labels: float = 0.2
    keyword_bonus: float = 0.0

    @classmethod
    def from_config(cls, config: ScoringConfig) -> ScoringWeights:
        return cls(
            lexical=config.lexical_weight,
            order=config.order_weight,
            labels=config.label_weight,
            keyword_bonus=config.keyword_bonus,
        )


def lexical_match(source_tokens: Sequence[str], candidate_tokens: Sequence[str]) -> float:
    """Fraction of source tokens present in the candidate.

    The denominator is the longer of the two sequences, so padding either
    title with extra words lowers the score.
    """
    if not source_tokens or not candidate_tokens:
        return 0.0

    candidate_set = set(candidate_tokens)
    matching = sum(1 for token in source_tokens if token in candidate_set)
    return matching / max(len(source_tokens), len(candidate_tokens), 1)


def order_proximity(source_tokens: Sequence[str], candidate_tokens: Sequence[str]) -> float:
    """Positional agreement of shared tokens, normalized by source length.

    Each shared token contributes 1 / (1 + |i - j|), where j is the
    candidate position nearest to source position i.
    """
    if not source_tokens or not candidate_tokens:
        return 0.0

    positions: dict[str, list[int]] = {}
    for index, token in enumerate(candidate_tokens):
        positions.setdefault(token, []).append(index)

    total = 0.0
    for index, token in enumerate(source_tokens):
        if token in positions:
            distance = min(abs(index - j) for j in positions[token])
            total += 1 / (1 + distance)

    return total / max(len(source_tokens), 1)


def jaccard(left: Sequence[str], right: Sequence[str]) -> float:
    """Jaccard index of two label collections (case-insensitive)."""
    left_set = {label.lower() for label in left}
    right_set = {label.lower() for label in right}
    union = left_set | right_set
    if not union:
        return 0.0
    return len(left_set & right_set) / len(union)


class SimilarityScorer:
    """Computes a composite similarity score in [0, 1].

    Example:
        scorer = SimilarityScorer()
        score = scorer.score(source_issue, candidate_issue)
    """

    def __init__(
        self,
        weights: ScoringWeights | None = None,
        domain_keywords: Sequence[str] = (),
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        """Initialize the scorer.

        Args:
            weights: Signal weights (defaults to the reference weighting)
            domain_keywords: Vocabulary for the optional keyword bonus
            logger: Structured logger to report through
        """
        self._weights = weights or ScoringWeights()
        self._domain_keywords = tuple(domain_keywords)
        self._log = logger or structlog.get_logger()

    @property
    def weights(self) -> ScoringWeights:
        return self._weights

    def score(self, source: IssueText, candidate: IssueText) -> float:
        """Return the similarity of candidate to source."""
        return self.score_with_breakdown(source, candidate)[0]

    def score_with_breakdown(
        self,
        source: IssueText,
        candidate: IssueText,
    ) -> tuple[float, dict[str, float]]:
        """Return the similarity and the contribution of each signal.

        Args:
            source: Issue being analyzed
            candidate: Issue returned by a search strategy

        Returns:
            Tuple of (score, breakdown)
        """
        source_title = getattr(source, "title", None)
        candidate_title = getattr(candidate, "title", None)
        if not source_title or not candidate_title:
            self._log.debug("similarity_missing_title")
            return 0.0, {}

        source_tokens = normalize(source_title)
        candidate_tokens = normalize(candidate_title)
        if not source_tokens or not candidate_tokens:
            return 0.0, {}

        w = self._weights
        lexical = lexical_match(source_tokens, candidate_tokens)
        order = order_proximity(source_tokens, candidate_tokens)
        title_score = (w.lexical * lexical + w.order * order) / (w.lexical + w.order)

        breakdown = {"lexical": lexical, "order": order, "title": title_score}
        score = title_score

        source_labels = tuple(getattr(source, "labels", None) or ())
        candidate_labels = tuple(getattr(candidate, "labels", None) or ())
        if source_labels and candidate_labels:
            label_overlap = jaccard(source_labels, candidate_labels)
            breakdown["labels"] = label_overlap
            score = (1 - w.labels) * title_score + w.labels * label_overlap

        if w.keyword_bonus > 0 and self._domain_keywords:
            shared = self._shared_keywords(source, candidate)
            if shared:
                breakdown["keywords"] = w.keyword_bonus
                score += w.keyword_bonus

        return max(0.0, min(score, 1.0)), breakdown

    def _shared_keywords(self, source: IssueText, candidate: IssueText) -> set[str]:
        source_text = f"{source.title} {getattr(source, 'description', '') or ''}"
        candidate_text = f"{candidate.title} {getattr(candidate, 'description', '') or ''}"
        return set(find_keywords(source_text, self._domain_keywords)) & set(
            find_keywords(candidate_text, self._domain_keywords)
        )
