"""Data models for merge requests and their file changes."""

from dataclasses import dataclass

from .issue import Issue


@dataclass(frozen=True)
class MergeRequest:
    """A merge request linked to an issue."""

    id: int
    iid: int
    project_id: int
    title: str
    description: str
    web_url: str
    state: str = ""


@dataclass(frozen=True)
class ChangeRecord:
    """One file's diff within a merge request."""

    old_path: str
    new_path: str
    diff: str

    @property
    def path(self) -> str:
        """Path used for file filters (new path unless the file was removed)."""
        return self.new_path or self.old_path

    @property
    def paths(self) -> tuple[str, ...]:
        """Distinct paths touched by this change, new path first."""
        if self.old_path and self.old_path != self.new_path:
            return tuple(p for p in (self.new_path, self.old_path) if p)
        return (self.path,) if self.path else ()


@dataclass(frozen=True)
class ResolvedMergeRequest:
    """A merge request that resolved a similar issue, with its changes."""

    issue: Issue
    merge_request: MergeRequest
    changes: tuple[ChangeRecord, ...]
