"""Concrete implementations of provider interfaces."""

from .gitlab import GitLabAdapter, RateLimitInfo

__all__ = [
    "GitLabAdapter",
    "RateLimitInfo",
]
