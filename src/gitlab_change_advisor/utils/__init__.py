"""Utility functions and helpers.

This module provides various utilities for the GitLab change advisor:
- security: Secret redaction, group path validation
- async_helpers: Store errors, async retry, rate limiting, timeouts
- logging: Structured logging with secret sanitization
- health: Health check utilities
"""

from gitlab_change_advisor.utils.health import (
    HealthChecker,
    HealthReport,
    HealthStatus,
)
from gitlab_change_advisor.utils.logging import (
    LogConfig,
    LogFormat,
    LogLevel,
    bind_context,
    configure_logging,
    get_logger,
    unbind_context,
)
from gitlab_change_advisor.utils.security import (
    RedactionError,
    SecretRedactor,
    SecurityError,
    validate_group_path,
)

__all__ = [
    # Health
    "HealthChecker",
    "HealthReport",
    "HealthStatus",
    # Logging
    "LogConfig",
    "LogFormat",
    "LogLevel",
    # Security
    "RedactionError",
    "SecretRedactor",
    "SecurityError",
    "bind_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
    "validate_group_path",
]
