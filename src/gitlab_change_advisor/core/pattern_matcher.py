"""Detection of known change shapes in merge request diffs.

Each domain rule pairs a file filter with a primary pattern and a list of
related patterns. Regexes detect known call shapes only; SQL and JSP are
never parsed.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import structlog
from structlog.typing import FilteringBoundLogger

from gitlab_change_advisor.models.analysis import (
    ChangeType,
    MainMatch,
    PatternDomain,
    PatternMatch,
    RelatedMatch,
)
from gitlab_change_advisor.models.merge_request import ChangeRecord
from gitlab_change_advisor.utils.logging import LogEventNames


@dataclass(frozen=True)
class DomainRule:
    """A (file filter, primary pattern, related patterns) triple."""

    domain: PatternDomain
    change_type: ChangeType
    file_filter: re.Pattern[str]
    primary: re.Pattern[str]
    related: tuple[re.Pattern[str], ...] = ()

    def applies_to(self, path: str) -> bool:
        return bool(path) and self.file_filter.search(path) is not None


_SQL_CONFIG_FILE = re.compile(r"Configuration\.sql$", re.IGNORECASE)
_JSP_BODY_FILE = re.compile(r"_body\.jsp$", re.IGNORECASE)


def _sql_call(procedure: str) -> re.Pattern[str]:
    """Match a stored procedure call through the end of its line."""
    return re.compile(rf"(?:EXECUTE\s+)?{procedure}[^\r\n]*", re.IGNORECASE)


def _jsp_tag(tag: str) -> re.Pattern[str]:
    """Match an opening JSP tag through its closing bracket, if on the same line."""
    return re.compile(rf"<{tag}[^>\r\n]*>?")


DEFAULT_RULES: tuple[DomainRule, ...] = (
    DomainRule(
        domain=PatternDomain.SQL,
        change_type=ChangeType.VIEW_UPDATE,
        file_filter=_SQL_CONFIG_FILE,
        primary=re.compile(
            r"EXECUTE\s+sp_SetView\s+'([^']+)'\s*,\s*'([^']+)'\s*,\s*'([^']+)'",
            re.IGNORECASE,
        ),
        related=(
            _sql_call("sp_SetWhereClause"),
            _sql_call("sp_SetQueryColumn"),
            _sql_call("sp_SetViewsetAlias"),
        ),
    ),
    DomainRule(
        domain=PatternDomain.SQL,
        change_type=ChangeType.DROPDOWN_UPDATE,
        file_filter=_SQL_CONFIG_FILE,
        primary=re.compile(r"EXECUTE\s+(sp_SetDropdown\w*)[ \t]*([^\r\n]*)", re.IGNORECASE),
        related=(
            _sql_call("sp_SetViewsetAlias"),
            _sql_call("sp_SetWhereClause"),
        ),
    ),
    DomainRule(
        domain=PatternDomain.JSP,
        change_type=ChangeType.TEMPLATE_UPDATE,
        file_filter=_JSP_BODY_FILE,
        primary=re.compile(r"<pano:(form|field|grid)[^>\r\n]*>?"),
        related=(
            _jsp_tag("tiles:insert"),
            _jsp_tag("html:submit"),
        ),
    ),
)


def extract_patterns(
    change: ChangeRecord,
    rules: Sequence[DomainRule] = DEFAULT_RULES,
) -> list[PatternMatch]:
    """Extract pattern matches from one file's diff.

    Every rule whose file filter matches the change path is tested
    independently. A rule contributes one match when its primary pattern is
    found, plus one related entry per related pattern found in the same diff.
    Related patterns alone never produce a match.

    Args:
        change: The file change to inspect
        rules: Domain rules to apply

    Returns:
        Zero or more pattern matches, in rule order
    """
    diff = change.diff or ""
    path = change.path
    matches: list[PatternMatch] = []

    for rule in rules:
        if not rule.applies_to(path):
            continue

        primary = rule.primary.search(diff)
        if primary is None:
            continue

        related: list[RelatedMatch] = []
        for pattern in rule.related:
            found = pattern.search(diff)
            if found is not None:
                related.append(RelatedMatch(full_text=found.group(0).strip()))

        matches.append(
            PatternMatch(
                domain=rule.domain,
                change_type=rule.change_type,
                main_match=MainMatch(
                    full_text=primary.group(0).strip(),
                    captured_groups=tuple(g.strip() if g else "" for g in primary.groups()),
                ),
                related_matches=tuple(related),
                file_path=path,
            )
        )

    return matches


class ChangePatternMatcher:
    """Applies domain rules to the changes of a merge request."""

    def __init__(
        self,
        rules: Sequence[DomainRule] = DEFAULT_RULES,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        self._rules = tuple(rules)
        self._log = logger or structlog.get_logger()

    @property
    def rules(self) -> tuple[DomainRule, ...]:
        return self._rules

    def extract_patterns(self, change: ChangeRecord) -> list[PatternMatch]:
        """Extract pattern matches from one change record."""
        matches = extract_patterns(change, self._rules)
        for match in matches:
            self._log.debug(
                LogEventNames.PATTERN_MATCHED,
                file_path=match.file_path,
                domain=match.domain.value,
                change_type=match.change_type.value,
                related=len(match.related_matches),
            )
        return matches

    def match_changes(self, changes: Iterable[ChangeRecord]) -> list[tuple[ChangeRecord, PatternMatch]]:
        """Extract pattern matches from many change records.

        Returns:
            (change, match) pairs in change order
        """
        return [(change, match) for change in changes for match in self.extract_patterns(change)]
