"""Entry point for running the GitLab change advisor.

This module provides the command line entry point. It handles:
- Configuration loading
- Logging setup with secret sanitization
- Adapter instantiation and cleanup
- Health checks, assigned issue listing and issue analysis

Analysis results are printed to stdout as JSON; logs go to stderr.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import structlog

from gitlab_change_advisor._version import __version__

log = structlog.get_logger()


def setup_logging(
    debug: bool = False,
    log_format: str = "console",
    file_path: Path | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structured logging with secret sanitization.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging
    """
    from gitlab_change_advisor.utils.logging import LogFormat, LogLevel, configure_logging

    level = LogLevel.DEBUG if debug else LogLevel.INFO
    fmt = LogFormat(log_format.lower()) if isinstance(log_format, str) else log_format

    configure_logging(
        level=level,
        log_format=fmt,
        file_path=file_path,
        file_enabled=file_enabled,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        prog="gitlab-change-advisor",
        description="Suggest configuration changes for an issue from similar resolved issues",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config/config.yaml"),
        help="Path to configuration file (default: config/config.yaml)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse config and validate without contacting GitLab",
    )

    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log output format (default: console)",
    )

    parser.add_argument(
        "--health-check",
        action="store_true",
        help="Check configuration, GitLab access and rate limit, then exit",
    )

    analysis = parser.add_argument_group("analysis")
    analysis.add_argument("--issue-id", help="Id of the issue to analyze")
    analysis.add_argument(
        "--title",
        help="Title of the issue to analyze (default: fetched from GitLab by --issue-id)",
    )
    analysis.add_argument("--description", default="", help="Issue description")
    analysis.add_argument(
        "--label",
        action="append",
        default=[],
        dest="labels",
        help="Issue label (repeatable)",
    )
    analysis.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Minimum similarity (default: search.similarity_threshold)",
    )
    analysis.add_argument(
        "--group",
        default=None,
        help="GitLab group id or path to search (default: gitlab.default_group)",
    )
    analysis.add_argument(
        "--assigned-to",
        metavar="USERNAME",
        help="List open issues assigned to USERNAME, then exit",
    )
    analysis.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds",
    )

    return parser.parse_args(argv)


async def run_advisor(args: argparse.Namespace) -> int:
    """Run the advisor for the parsed arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    config_path: Path = args.config
    log.info(
        "starting_gitlab_change_advisor",
        version=__version__,
        config_path=str(config_path),
    )

    try:
        # Load configuration
        from gitlab_change_advisor.config.loader import load_config

        log.info("loading_configuration", path=str(config_path))
        config = load_config(config_path)
        log.info("configuration_loaded")

        # Reconfigure logging from config file settings
        from gitlab_change_advisor.utils.logging import configure_logging

        configure_logging(
            level="DEBUG" if args.debug else config.logging.level,
            log_format=config.logging.format,
            file_path=config.logging.file.path if config.logging.file.enabled else None,
            file_enabled=config.logging.file.enabled,
        )

        if args.dry_run:
            log.info("dry_run_mode_config_valid")
            return 0

        from gitlab_change_advisor.adapters.gitlab import GitLabAdapter

        if args.health_check:
            from gitlab_change_advisor.utils.health import HealthChecker

            async with GitLabAdapter(config) as gitlab:
                report = await HealthChecker(config, gitlab).run_all_checks()

            print(json.dumps(report.to_dict(), indent=2))
            if report.healthy:
                log.info("health_check_passed", details=report.details)
                return 0
            log.error("health_check_failed", details=report.details)
            return 1

        if args.assigned_to:
            async with GitLabAdapter(config) as gitlab:
                issues = await gitlab.list_assigned_issues(args.assigned_to)

            print(json.dumps([issue.to_dict() for issue in issues], indent=2))
            return 0

        if not args.issue_id:
            log.error("missing_issue_arguments", hint="--issue-id is required")
            return 1

        from gitlab_change_advisor.core.advisor import ValidationError, create_advisor
        from gitlab_change_advisor.utils.async_helpers import IssueStoreError

        advisor, adapter = create_advisor(config)
        try:
            title, description, labels = args.title, args.description, args.labels
            if not title:
                if adapter is None or not str(args.issue_id).isdigit():
                    log.error(
                        "missing_issue_arguments",
                        hint="--title is required unless --issue-id is a GitLab issue id",
                    )
                    return 1
                issue = await adapter.get_issue(int(args.issue_id))
                log.info("issue_resolved", issue_id=issue.id, title=issue.title)
                title = issue.title
                description = description or issue.description
                labels = labels or list(issue.labels)

            result = await advisor.analyze_issue(
                args.issue_id,
                title,
                args.threshold,
                description=description,
                labels=labels,
                scope=args.group,
                timeout=args.timeout,
            )
        except ValidationError as e:
            log.error("invalid_request", error=str(e))
            return 1
        except IssueStoreError as e:
            log.error("issue_lookup_failed", issue_id=args.issue_id, error=str(e))
            return 1
        finally:
            if adapter is not None:
                await adapter.aclose()

        print(json.dumps(result.to_dict(), indent=2))
        return 1 if result.errors else 0

    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(config_path), error=str(e))
        return 1
    except ValueError as e:
        log.error("configuration_invalid", error=str(e))
        return 1
    except Exception as e:
        log.exception("fatal_error", error=str(e))
        return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # Setup logging with CLI options
    setup_logging(
        debug=args.debug,
        log_format=args.format,
    )

    try:
        return asyncio.run(run_advisor(args))
    except KeyboardInterrupt:
        log.info("interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
