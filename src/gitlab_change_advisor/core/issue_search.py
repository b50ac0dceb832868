"""Similar issue search across several query strategies.

This module implements the IssueSearchOrchestrator, which finds closed
issues resembling a source issue using multiple strategies:
1. Exact phrase - the full source title
2. Term disjunction - the most significant title tokens, any of which may match
3. Domain keywords - stored procedure / template tag names mentioned in the source
4. Label filter - issues sharing the source labels

Strategies run concurrently. A failing strategy contributes nothing; only
when every strategy fails does the search itself fail.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING

import structlog
from structlog.typing import FilteringBoundLogger

from gitlab_change_advisor.core.similarity import SimilarityScorer
from gitlab_change_advisor.core.text_normalizer import find_keywords, significant_terms
from gitlab_change_advisor.models.issue import (
    Issue,
    ScoredCandidate,
    SearchMode,
    SearchQuery,
    SourceIssue,
)
from gitlab_change_advisor.utils.async_helpers import AdvisorError, with_timeout
from gitlab_change_advisor.utils.logging import LogEventNames

if TYPE_CHECKING:
    from gitlab_change_advisor.config.schema import SearchConfig
    from gitlab_change_advisor.interfaces.issue_store import IssueStore


class SearchFailure(AdvisorError):
    """Every search strategy failed."""

    def __init__(self, message: str, errors: Sequence[BaseException] = ()) -> None:
        super().__init__(message)
        self.errors = tuple(errors)


class IssueSearchOrchestrator:
    """Finds, scores and ranks issues similar to a source issue.

    Responsibilities:
    - Build one search query per applicable strategy
    - Run the queries concurrently against the issue store
    - Merge and deduplicate the results by issue id
    - Score, threshold and sort the candidates

    Example:
        orchestrator = IssueSearchOrchestrator(store, SimilarityScorer(), config.search)
        candidates = await orchestrator.find_similar(source, "8", threshold=0.4)
    """

    def __init__(
        self,
        store: IssueStore,
        scorer: SimilarityScorer,
        config: SearchConfig,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Issue store to search
            scorer: Scorer used to rank candidates
            config: Search configuration
            logger: Structured logger to report through
        """
        self._store = store
        self._scorer = scorer
        self._config = config
        self._log = logger or structlog.get_logger()

    def build_queries(self, source: SourceIssue) -> list[SearchQuery]:
        """Build the search queries for a source issue.

        The exact-phrase and term-disjunction strategies are always present;
        the keyword and label strategies only when the source warrants them.

        Args:
            source: Issue being analyzed

        Returns:
            Queries in strategy order
        """
        title = " ".join(source.title.split())
        queries = [SearchQuery(terms=(title,), mode=SearchMode.EXACT_PHRASE, strategy="title")]

        terms = significant_terms(title, self._config.max_terms)
        queries.append(
            SearchQuery(
                terms=tuple(terms) if terms else (title,),
                mode=SearchMode.TERM_DISJUNCTION,
                strategy="terms",
            )
        )

        keywords = find_keywords(
            f"{source.title} {source.description}", self._config.domain_keywords
        )
        if keywords:
            queries.append(
                SearchQuery(
                    terms=tuple(keywords),
                    mode=SearchMode.TERM_DISJUNCTION,
                    strategy="keywords",
                )
            )

        if source.labels:
            queries.append(
                SearchQuery(
                    terms=tuple(source.labels),
                    mode=SearchMode.LABEL_FILTERED,
                    strategy="labels",
                )
            )

        return queries

    async def find_similar(
        self,
        source: SourceIssue,
        scope: str,
        threshold: float,
        timeout: float | None = None,
    ) -> list[ScoredCandidate]:
        """Find issues similar to the source issue.

        Args:
            source: Issue being analyzed
            scope: Group to search within
            threshold: Minimum similarity to keep a candidate
            timeout: Optional per-query timeout in seconds

        Returns:
            Candidates sorted by similarity descending

        Raises:
            ValueError: If threshold is outside [0, 1]
            SearchFailure: If every search strategy failed
        """
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"Threshold must be between 0 and 1, got {threshold}")

        queries = self.build_queries(source)
        self._log.info(
            LogEventNames.SEARCH_START,
            source_id=source.id,
            scope=scope,
            strategies=[q.strategy for q in queries],
        )

        result_sets = await self._run_queries(queries, scope, timeout)

        succeeded = [issues for issues in result_sets if not isinstance(issues, BaseException)]
        if not succeeded:
            failures = [r for r in result_sets if isinstance(r, BaseException)]
            self._log.error(
                LogEventNames.SEARCH_EXHAUSTED,
                source_id=source.id,
                scope=scope,
                failed=len(failures),
            )
            raise SearchFailure(
                f"All {len(failures)} search strategies failed for group {scope}: "
                + "; ".join(str(e) or type(e).__name__ for e in failures),
                failures,
            )

        candidates = self._merge(succeeded, exclude_id=source.id)
        scored = self._score(source, candidates, threshold)

        self._log.info(
            LogEventNames.SEARCH_COMPLETE,
            source_id=source.id,
            strategies_ok=len(succeeded),
            strategies_failed=len(result_sets) - len(succeeded),
            candidates=len(candidates),
            matches=len(scored),
        )
        return scored

    async def _run_queries(
        self,
        queries: Sequence[SearchQuery],
        scope: str,
        timeout: float | None,
    ) -> list[list[Issue] | BaseException]:
        """Run all queries concurrently and wait for every one to settle."""
        semaphore = asyncio.Semaphore(self._config.max_concurrent)

        async def run(query: SearchQuery) -> list[Issue]:
            async with semaphore:
                return await with_timeout(
                    self._store.search_issues(query, scope),
                    timeout,
                    f"Search strategy '{query.strategy}' timed out after {timeout}s",
                )

        results = await asyncio.gather(*(run(q) for q in queries), return_exceptions=True)

        settled: list[list[Issue] | BaseException] = []
        for query, result in zip(queries, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                self._log.warning(
                    LogEventNames.SEARCH_STRATEGY_FAILED,
                    strategy=query.strategy,
                    mode=query.mode.value,
                    error=str(result),
                    error_type=type(result).__name__,
                )
            settled.append(result)
        return settled

    def _merge(self, result_sets: Sequence[Sequence[Issue]], exclude_id: str) -> list[Issue]:
        """Concatenate result sets, keeping the first occurrence of each id."""
        seen: set[str] = set()
        merged: list[Issue] = []
        for issues in result_sets:
            for issue in issues:
                key = str(issue.id)
                if key in seen or key == str(exclude_id):
                    continue
                seen.add(key)
                merged.append(issue)
        return merged

    def _score(
        self,
        source: SourceIssue,
        candidates: Sequence[Issue],
        threshold: float,
    ) -> list[ScoredCandidate]:
        scored: list[ScoredCandidate] = []
        for issue in candidates:
            similarity, breakdown = self._scorer.score_with_breakdown(source, issue)
            if similarity >= threshold:
                scored.append(ScoredCandidate(issue=issue, similarity=similarity, breakdown=breakdown))

        # sort() is stable, so ties keep merge order
        scored.sort(key=lambda c: c.similarity, reverse=True)

        self._log.info(
            LogEventNames.THRESHOLD_FILTER_APPLIED,
            threshold=threshold,
            considered=len(candidates),
            retained=len(scored),
        )

        if self._config.max_results is not None:
            scored = scored[: self._config.max_results]
        return scored
