"""Issue advisor that coordinates search, fetching and suggestion generation.

This module implements the IssueAdvisor, the single entry point of the
core. For one source issue it:
- Finds similar closed issues through the IssueSearchOrchestrator
- Fetches the merge requests that closed them, one branch per issue
- Fetches each merge request's changes, one branch per merge request
- Matches known change patterns and turns them into suggestions

Each fan-out wave is issued concurrently and joined before the next stage
runs. A failed branch is logged and contributes nothing; only a wave in
which every branch failed marks its stage as failed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

import structlog
from structlog.typing import FilteringBoundLogger

from gitlab_change_advisor.core.issue_search import IssueSearchOrchestrator, SearchFailure
from gitlab_change_advisor.core.pattern_matcher import ChangePatternMatcher
from gitlab_change_advisor.core.similarity import ScoringWeights, SimilarityScorer
from gitlab_change_advisor.core.suggestions import SuggestionContext, SuggestionGenerator
from gitlab_change_advisor.models.analysis import (
    AnalysisResult,
    PipelineStatus,
    StageStatus,
    Suggestion,
)
from gitlab_change_advisor.models.issue import Issue, ScoredCandidate, SourceIssue
from gitlab_change_advisor.models.merge_request import (
    ChangeRecord,
    MergeRequest,
    ResolvedMergeRequest,
)
from gitlab_change_advisor.utils.async_helpers import AdvisorError, with_timeout
from gitlab_change_advisor.utils.logging import LogEventNames, bind_context, unbind_context

if TYPE_CHECKING:
    from gitlab_change_advisor.adapters.gitlab import GitLabAdapter
    from gitlab_change_advisor.config.schema import AdvisorConfig
    from gitlab_change_advisor.interfaces.issue_store import IssueStore

K = TypeVar("K")
R = TypeVar("R")


class ValidationError(AdvisorError):
    """The request is missing an issue id or title, or has a bad threshold."""


class PartialFetchFailure(AdvisorError):
    """One branch of a fetch wave failed.

    Attributes:
        stage: Pipeline stage the branch belonged to
        target: Human-readable identifier of the failed branch
    """

    def __init__(self, stage: str, target: str, cause: BaseException) -> None:
        super().__init__(f"{stage} fetch failed for {target}: {cause or type(cause).__name__}")
        self.stage = stage
        self.target = target
        self.cause = cause


@dataclass
class _WaveOutcome(Generic[K, R]):
    """Settled results of one fan-out wave."""

    succeeded: list[tuple[K, R]]
    failures: list[PartialFetchFailure]

    @property
    def exhausted(self) -> bool:
        """True when at least one branch ran and none succeeded."""
        return bool(self.failures) and not self.succeeded


class IssueAdvisor:
    """Suggests changes for an issue from the history of similar issues.

    Example:
        advisor = IssueAdvisor(store, orchestrator, matcher, generator, config)
        result = await advisor.analyze_issue("123", "Update status grid view column")
        print(result.to_dict())
    """

    def __init__(
        self,
        store: IssueStore,
        orchestrator: IssueSearchOrchestrator,
        matcher: ChangePatternMatcher,
        generator: SuggestionGenerator,
        config: AdvisorConfig,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        """Initialize the advisor.

        Args:
            store: Issue store used for merge request and diff fetches
            orchestrator: Similar issue search
            matcher: Change pattern matcher
            generator: Suggestion generator
            config: Application configuration
            logger: Structured logger to report through
        """
        self._store = store
        self._orchestrator = orchestrator
        self._matcher = matcher
        self._generator = generator
        self._config = config
        self._log = logger or structlog.get_logger()

    async def analyze_issue(
        self,
        issue_id: str | int,
        issue_title: str,
        threshold: float | None = None,
        *,
        description: str = "",
        labels: Sequence[str] = (),
        scope: str | None = None,
        timeout: float | None = None,
    ) -> AnalysisResult:
        """Analyze an issue and suggest changes.

        Args:
            issue_id: Id of the issue being analyzed (excluded from results)
            issue_title: Title of the issue being analyzed
            threshold: Minimum similarity, defaults to search.similarity_threshold
            description: Optional issue description
            labels: Optional issue labels
            scope: Group to search, defaults to gitlab.default_group
            timeout: Per-call timeout in seconds, defaults to runtime.request_timeout

        Returns:
            Similar issues, resolved merge requests, suggestions and stage status

        Raises:
            ValidationError: If the id or title is blank, or the threshold is
                outside [0, 1]. Raised before any network call.
        """
        source = self._validate(issue_id, issue_title, threshold, description, labels)
        if threshold is None:
            threshold = self._config.search.similarity_threshold
        scope = scope or self._config.gitlab.default_group
        if timeout is None:
            timeout = self._config.runtime.request_timeout

        bind_context(issue_id=source.id, scope=scope)
        try:
            return await self._analyze(source, scope, threshold, timeout)
        finally:
            unbind_context("issue_id", "scope")

    async def _analyze(
        self, source: SourceIssue, scope: str, threshold: float, timeout: float
    ) -> AnalysisResult:
        self._log.info(
            LogEventNames.ANALYSIS_START,
            issue_id=source.id,
            scope=scope,
            threshold=threshold,
        )

        try:
            candidates = await self._orchestrator.find_similar(source, scope, threshold, timeout)
        except SearchFailure as e:
            self._log.error(LogEventNames.ANALYSIS_COMPLETE, issue_id=source.id, status="failed")
            return AnalysisResult(
                status=PipelineStatus(similar_issues=StageStatus.FAILED),
                errors=(str(e),),
            )

        errors: list[str] = []
        warnings: list[str] = []

        mr_wave = await self._fetch_merge_requests(candidates, timeout)
        warnings.extend(str(f) for f in mr_wave.failures)
        if mr_wave.exhausted:
            errors.append(
                f"Could not fetch merge requests for any of {len(mr_wave.failures)} similar issues"
            )
            result = AnalysisResult(
                similar_issues=tuple(candidates),
                status=PipelineStatus(
                    similar_issues=StageStatus.COMPLETED,
                    merge_requests=StageStatus.FAILED,
                ),
                errors=tuple(errors),
                warnings=tuple(warnings),
            )
            self._log_complete(source, result)
            return result

        pairs = self._unique_merge_requests(mr_wave.succeeded)
        change_wave = await self._fetch_changes(pairs, timeout)
        warnings.extend(str(f) for f in change_wave.failures)

        resolved = [
            ResolvedMergeRequest(issue=issue, merge_request=mr, changes=tuple(changes))
            for (issue, mr), changes in change_wave.succeeded
        ]

        if change_wave.exhausted:
            errors.append(f"Could not fetch changes for any of {len(change_wave.failures)} merge requests")
            suggestions_status = StageStatus.FAILED
        else:
            suggestions_status = StageStatus.COMPLETED

        result = AnalysisResult(
            similar_issues=tuple(candidates),
            merge_requests=tuple(resolved),
            suggestions=tuple(self._suggest(resolved)),
            status=PipelineStatus(
                similar_issues=StageStatus.COMPLETED,
                merge_requests=StageStatus.COMPLETED,
                suggestions=suggestions_status,
            ),
            errors=tuple(errors),
            warnings=tuple(warnings),
        )
        self._log_complete(source, result)
        return result

    def _validate(
        self,
        issue_id: str | int,
        issue_title: str,
        threshold: float | None,
        description: str,
        labels: Sequence[str],
    ) -> SourceIssue:
        issue_key = "" if issue_id is None else str(issue_id).strip()
        title = (issue_title or "").strip()

        problem = None
        if not issue_key:
            problem = "issue_id is required"
        elif not title:
            problem = "issue_title is required"
        elif threshold is not None and not 0.0 <= threshold <= 1.0:
            problem = f"threshold must be between 0 and 1, got {threshold}"

        if problem:
            self._log.warning(LogEventNames.ANALYSIS_REJECTED, reason=problem)
            raise ValidationError(problem)

        return SourceIssue(
            id=issue_key,
            title=title,
            description=description or "",
            labels=tuple(labels),
        )

    async def _run_wave(
        self,
        stage: str,
        keys: Sequence[K],
        fetch: Callable[[K], Awaitable[R]],
        describe: Callable[[K], str],
        timeout: float | None,
        failure_event: str,
    ) -> _WaveOutcome[K, R]:
        """Issue one fetch per key concurrently and wait for all of them."""
        semaphore = asyncio.Semaphore(self._config.runtime.max_concurrent_fetches)

        async def run(key: K) -> R:
            async with semaphore:
                return await with_timeout(
                    fetch(key),
                    timeout,
                    f"{stage} fetch for {describe(key)} timed out after {timeout}s",
                )

        results = await asyncio.gather(*(run(k) for k in keys), return_exceptions=True)

        outcome: _WaveOutcome[K, R] = _WaveOutcome(succeeded=[], failures=[])
        for key, result in zip(keys, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failure = PartialFetchFailure(stage, describe(key), result)
                self._log.warning(
                    failure_event,
                    target=failure.target,
                    error=str(result),
                    error_type=type(result).__name__,
                )
                outcome.failures.append(failure)
            else:
                outcome.succeeded.append((key, result))

        if outcome.exhausted:
            self._log.error(
                LogEventNames.FETCH_WAVE_EXHAUSTED,
                stage=stage,
                failed=len(outcome.failures),
            )
        return outcome

    async def _fetch_merge_requests(
        self,
        candidates: Sequence[ScoredCandidate],
        timeout: float | None,
    ) -> _WaveOutcome[Issue, list[MergeRequest]]:
        return await self._run_wave(
            "merge_requests",
            [c.issue for c in candidates],
            lambda issue: self._store.list_merge_requests_for_issue(issue.project_id, issue.iid),
            lambda issue: f"issue {issue.project_id}#{issue.iid}",
            timeout,
            LogEventNames.MERGE_REQUEST_FETCH_FAILED,
        )

    async def _fetch_changes(
        self,
        pairs: Sequence[tuple[Issue, MergeRequest]],
        timeout: float | None,
    ) -> _WaveOutcome[tuple[Issue, MergeRequest], list[ChangeRecord]]:
        return await self._run_wave(
            "changes",
            pairs,
            lambda pair: self._store.get_merge_request_changes(pair[1].project_id, pair[1].iid),
            lambda pair: f"merge request {pair[1].project_id}!{pair[1].iid}",
            timeout,
            LogEventNames.CHANGES_FETCH_FAILED,
        )

    @staticmethod
    def _unique_merge_requests(
        fetched: Iterable[tuple[Issue, list[MergeRequest]]],
    ) -> list[tuple[Issue, MergeRequest]]:
        """Pair each merge request with the first similar issue it closed."""
        seen: set[tuple[int, int]] = set()
        pairs: list[tuple[Issue, MergeRequest]] = []
        for issue, merge_requests in fetched:
            for mr in merge_requests:
                key = (mr.project_id, mr.iid)
                if key in seen:
                    continue
                seen.add(key)
                pairs.append((issue, mr))
        return pairs

    def _suggest(self, resolved: Sequence[ResolvedMergeRequest]) -> list[Suggestion]:
        suggestions: list[Suggestion] = []
        for item in resolved:
            for change, match in self._matcher.match_changes(item.changes):
                context = SuggestionContext(
                    related_files=change.paths,
                    source_url=item.merge_request.web_url,
                )
                suggestion = self._generator.generate(match, context)
                if suggestion is not None:
                    suggestions.append(suggestion)
        return suggestions

    def _log_complete(self, source: SourceIssue, result: AnalysisResult) -> None:
        self._log.info(
            LogEventNames.ANALYSIS_COMPLETE,
            issue_id=source.id,
            similar_issues=len(result.similar_issues),
            merge_requests=len(result.merge_requests),
            suggestions=len(result.suggestions),
            warnings=len(result.warnings),
            status=result.status.to_dict(),
        )


def create_advisor(
    config: AdvisorConfig,
    store: IssueStore | None = None,
    logger: FilteringBoundLogger | None = None,
) -> tuple[IssueAdvisor, GitLabAdapter | None]:
    """Build an advisor and its components from configuration.

    Args:
        config: Application configuration
        store: Issue store to use instead of a new GitLab adapter
        logger: Structured logger shared by all components

    Returns:
        Tuple of (advisor, adapter). The adapter is None when a store was
        given; otherwise the caller owns it and must close it.
    """
    adapter: GitLabAdapter | None = None
    if store is None:
        from gitlab_change_advisor.adapters.gitlab import GitLabAdapter

        adapter = GitLabAdapter(config)
        store = adapter

    scorer = SimilarityScorer(
        ScoringWeights.from_config(config.scoring),
        domain_keywords=config.search.domain_keywords,
        logger=logger,
    )
    orchestrator = IssueSearchOrchestrator(store, scorer, config.search, logger=logger)
    advisor = IssueAdvisor(
        store,
        orchestrator,
        ChangePatternMatcher(logger=logger),
        SuggestionGenerator(logger=logger),
        config,
        logger=logger,
    )
    return advisor, adapter
