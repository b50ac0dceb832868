"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    AdvisorConfig,
    GitLabConfig,
    LoggingConfig,
    RetryConfig,
    RuntimeConfig,
    ScoringConfig,
    SearchConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "AdvisorConfig",
    # Top-level configs
    "GitLabConfig",
    "SearchConfig",
    "ScoringConfig",
    "LoggingConfig",
    "RuntimeConfig",
    "RetryConfig",
]
