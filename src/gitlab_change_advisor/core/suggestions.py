"""Turns matched change patterns into suggested edits."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import PurePosixPath

import structlog
from structlog.typing import FilteringBoundLogger

from gitlab_change_advisor.models.analysis import (
    ChangeType,
    PatternMatch,
    Suggestion,
)
from gitlab_change_advisor.utils.logging import LogEventNames


@dataclass(frozen=True)
class SuggestionContext:
    """Where a pattern match came from."""

    related_files: tuple[str, ...] = ()
    source_url: str = ""


def _related_texts(match: PatternMatch, *keywords: str) -> list[str]:
    """Literal related matches mentioning any of the given keywords."""
    lowered = [k.lower() for k in keywords]
    return [
        related.full_text
        for related in match.related_matches
        if any(k in related.full_text.lower() for k in lowered)
    ]


def _file_name(match: PatternMatch, context: SuggestionContext) -> str:
    path = match.file_path or (context.related_files[0] if context.related_files else "")
    return PurePosixPath(path).name if path else "the configuration file"


def view_update_changes(match: PatternMatch) -> list[str]:
    """Rebuild the sp_SetView call, followed by any WHERE clause calls."""
    groups = match.main_match.captured_groups
    if len(groups) < 3:
        return [match.main_match.full_text]

    query, viewset, name = groups[:3]
    changes = [f"EXECUTE sp_SetView '{query}', '{viewset}', '{name}'"]
    changes.extend(_related_texts(match, "sp_SetWhereClause"))
    return changes


def dropdown_update_changes(match: PatternMatch) -> list[str]:
    """Rebuild the sp_SetDropdown call, followed by alias and WHERE clause calls."""
    groups = match.main_match.captured_groups
    if len(groups) < 2:
        return [match.main_match.full_text]

    procedure, arguments = groups[:2]
    statement = f"EXECUTE {procedure} {arguments}".rstrip()
    changes = [statement]
    changes.extend(_related_texts(match, "sp_SetViewsetAlias", "sp_SetWhereClause"))
    return changes


def template_update_changes(match: PatternMatch) -> list[str]:
    """Repeat the pano tag, followed by tiles and submit tags."""
    changes = [match.main_match.full_text]
    changes.extend(_related_texts(match, "<tiles:insert", "<html:submit"))
    return changes


class SuggestionGenerator:
    """Maps pattern matches to type-specific suggestions.

    Unknown change types produce no suggestion rather than an error.

    Example:
        generator = SuggestionGenerator()
        suggestion = generator.generate(match, SuggestionContext(related_files=("db/ezConfiguration.sql",)))
    """

    def __init__(self, logger: FilteringBoundLogger | None = None) -> None:
        self._log = logger or structlog.get_logger()
        self._builders: dict[ChangeType, Callable[[PatternMatch, SuggestionContext], Suggestion]] = {
            ChangeType.VIEW_UPDATE: self._view_update,
            ChangeType.DROPDOWN_UPDATE: self._dropdown_update,
            ChangeType.TEMPLATE_UPDATE: self._template_update,
        }

    def generate(self, match: PatternMatch, context: SuggestionContext) -> Suggestion | None:
        """Build a suggestion for a pattern match.

        Args:
            match: The matched change pattern
            context: Originating files and merge request

        Returns:
            A suggestion, or None when the change type is not recognised
        """
        builder = self._builders.get(match.change_type)
        if builder is None:
            self._log.debug(
                LogEventNames.SUGGESTION_SKIPPED,
                change_type=getattr(match.change_type, "value", str(match.change_type)),
                file_path=match.file_path,
            )
            return None
        return builder(match, context)

    def _view_update(self, match: PatternMatch, context: SuggestionContext) -> Suggestion:
        return Suggestion(
            type=match.domain,
            change_type=match.change_type,
            title="View Configuration Update",
            description=f"Update view configuration in {_file_name(match, context)}",
            specific_changes=tuple(view_update_changes(match)),
            related_files=context.related_files,
            source_url=context.source_url,
        )

    def _dropdown_update(self, match: PatternMatch, context: SuggestionContext) -> Suggestion:
        return Suggestion(
            type=match.domain,
            change_type=match.change_type,
            title="Dropdown Configuration Update",
            description=f"Update dropdown configuration in {_file_name(match, context)}",
            specific_changes=tuple(dropdown_update_changes(match)),
            related_files=context.related_files,
            source_url=context.source_url,
        )

    def _template_update(self, match: PatternMatch, context: SuggestionContext) -> Suggestion:
        tag = match.main_match.captured_groups[0] if match.main_match.captured_groups else "tag"
        return Suggestion(
            type=match.domain,
            change_type=match.change_type,
            title="Template Update",
            description=f"Update pano:{tag} usage in {_file_name(match, context)}",
            specific_changes=tuple(template_update_changes(match)),
            related_files=context.related_files,
            source_url=context.source_url,
        )
