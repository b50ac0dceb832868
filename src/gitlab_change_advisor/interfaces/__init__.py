"""Protocol definitions for pluggable adapters."""

from .issue_store import IssueStore

__all__ = ["IssueStore"]
