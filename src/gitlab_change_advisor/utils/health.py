"""Health check utilities for monitoring service health.

This module provides health check capabilities for the advisor:
- Check configuration consistency
- Check GitLab credential access
- Check remaining GitLab rate limit headroom
- Generate health status reports
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

from gitlab_change_advisor.utils.async_helpers import AuthenticationError
from gitlab_change_advisor.utils.logging import LogEventNames
from gitlab_change_advisor.utils.security import validate_group_path

if TYPE_CHECKING:
    from gitlab_change_advisor.adapters.gitlab import GitLabAdapter
    from gitlab_change_advisor.config.schema import AdvisorConfig

log = structlog.get_logger()

# Below this share of the rate limit the service is reported as degraded
RATE_LIMIT_DEGRADED_RATIO = 0.1


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class CheckResult:
    """Result of a single health check."""

    name: str
    status: HealthStatus
    message: str
    latency_ms: float | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthReport:
    """Overall health report."""

    healthy: bool
    status: HealthStatus
    timestamp: datetime
    checks: list[CheckResult]
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "healthy": self.healthy,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "checks": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "message": c.message,
                    "latency_ms": c.latency_ms,
                    "details": c.details,
                }
                for c in self.checks
            ],
            "details": self.details,
        }


class HealthChecker:
    """Performs health checks on the advisor's dependencies.

    Example:
        async with GitLabAdapter(config) as gitlab:
            report = await HealthChecker(config, gitlab).run_all_checks()
            if not report.healthy:
                print(report.to_dict())
    """

    CHECK_NAMES = ("config", "gitlab_auth", "rate_limit")

    def __init__(self, config: AdvisorConfig, gitlab: GitLabAdapter) -> None:
        """Initialize the health checker.

        Args:
            config: Application configuration
            gitlab: GitLab adapter to check
        """
        self._config = config
        self._gitlab = gitlab

    async def run_all_checks(self) -> HealthReport:
        """Run all health checks and return a report."""
        log.info(LogEventNames.HEALTH_CHECK_START)
        start_time = datetime.now(UTC)

        results = await asyncio.gather(
            self._check_config(),
            self._check_gitlab_auth(),
            self._check_rate_limit(),
            return_exceptions=True,
        )

        checks: list[CheckResult] = []
        for name, result in zip(self.CHECK_NAMES, results, strict=True):
            if isinstance(result, BaseException):
                checks.append(
                    CheckResult(
                        name=name,
                        status=HealthStatus.UNHEALTHY,
                        message=f"Check failed with exception: {result}",
                    )
                )
            else:
                checks.append(result)

        if all(c.status == HealthStatus.HEALTHY for c in checks):
            overall_status = HealthStatus.HEALTHY
            healthy = True
        elif any(c.status == HealthStatus.UNHEALTHY for c in checks):
            overall_status = HealthStatus.UNHEALTHY
            healthy = False
        else:
            overall_status = HealthStatus.DEGRADED
            healthy = True

        report = HealthReport(
            healthy=healthy,
            status=overall_status,
            timestamp=start_time,
            checks=checks,
            details={
                "total_checks": len(checks),
                "healthy_checks": sum(1 for c in checks if c.status == HealthStatus.HEALTHY),
                "degraded_checks": sum(1 for c in checks if c.status == HealthStatus.DEGRADED),
                "unhealthy_checks": sum(1 for c in checks if c.status == HealthStatus.UNHEALTHY),
            },
        )

        log.info(
            LogEventNames.HEALTH_CHECK_COMPLETE,
            healthy=healthy,
            status=overall_status.value,
            checks_run=len(checks),
        )
        return report

    async def _check_config(self) -> CheckResult:
        """Check configuration consistency."""
        gitlab = self._config.gitlab
        if not gitlab.token or gitlab.token.startswith("${"):
            return CheckResult(
                name="config",
                status=HealthStatus.UNHEALTHY,
                message="GitLab token not configured",
            )

        if not validate_group_path(gitlab.default_group):
            return CheckResult(
                name="config",
                status=HealthStatus.UNHEALTHY,
                message=f"Invalid default group: {gitlab.default_group}",
            )

        return CheckResult(
            name="config",
            status=HealthStatus.HEALTHY,
            message="Configuration valid",
            details={
                "gitlab_url": gitlab.url,
                "default_group": gitlab.default_group,
                "similarity_threshold": self._config.search.similarity_threshold,
            },
        )

    async def _check_gitlab_auth(self) -> CheckResult:
        """Check that GitLab accepts the configured credential."""
        start = time.monotonic()
        try:
            user = await self._gitlab.check_access()
        except AuthenticationError as e:
            return CheckResult(
                name="gitlab_auth",
                status=HealthStatus.UNHEALTHY,
                message=f"GitLab rejected the credential: {e}",
                latency_ms=(time.monotonic() - start) * 1000,
            )
        except Exception as e:
            return CheckResult(
                name="gitlab_auth",
                status=HealthStatus.UNHEALTHY,
                message=f"GitLab access check failed: {e}",
                latency_ms=(time.monotonic() - start) * 1000,
            )

        return CheckResult(
            name="gitlab_auth",
            status=HealthStatus.HEALTHY,
            message="GitLab credential accepted",
            latency_ms=(time.monotonic() - start) * 1000,
            details={"username": user.get("username", "")},
        )

    async def _check_rate_limit(self) -> CheckResult:
        """Check remaining GitLab rate limit headroom."""
        try:
            info = await self._gitlab.get_rate_limit()
        except Exception as e:
            return CheckResult(
                name="rate_limit",
                status=HealthStatus.UNHEALTHY,
                message=f"Rate limit check failed: {e}",
            )

        details = {
            "limit": info.limit,
            "remaining": info.remaining,
            "reset_at": info.reset_at.isoformat() if info.reset_at else None,
        }
        ratio = info.remaining_ratio

        if ratio is None:
            return CheckResult(
                name="rate_limit",
                status=HealthStatus.HEALTHY,
                message="GitLab did not report rate limit headers",
                details=details,
            )
        if info.remaining == 0:
            return CheckResult(
                name="rate_limit",
                status=HealthStatus.UNHEALTHY,
                message="GitLab rate limit exhausted",
                details=details,
            )
        if ratio < RATE_LIMIT_DEGRADED_RATIO:
            return CheckResult(
                name="rate_limit",
                status=HealthStatus.DEGRADED,
                message=f"GitLab rate limit low: {info.remaining}/{info.limit} remaining",
                details=details,
            )
        return CheckResult(
            name="rate_limit",
            status=HealthStatus.HEALTHY,
            message=f"{info.remaining}/{info.limit} requests remaining",
            details=details,
        )
