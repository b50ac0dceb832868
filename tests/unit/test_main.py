"""Tests for the command line entry point."""

import json
from pathlib import Path

import pytest
from conftest import TEST_TOKEN, FakeIssueStore, make_issue, make_merge_request

from gitlab_change_advisor import __main__ as cli
from gitlab_change_advisor.adapters import gitlab as gitlab_module
from gitlab_change_advisor.core import advisor as advisor_module
from gitlab_change_advisor.models.issue import Issue
from gitlab_change_advisor.models.merge_request import ChangeRecord
from gitlab_change_advisor.utils.async_helpers import NotFoundError


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("TEST_GITLAB_TOKEN", TEST_TOKEN)
    path = tmp_path / "config.yaml"
    path.write_text(
        """
gitlab:
  url: https://gitlab.example.com
  token: ${TEST_GITLAB_TOKEN}
  default_group: "8"
logging:
  format: json
"""
    )
    return path


class TestParseArgs:
    """Tests for argument parsing."""

    def test_defaults(self) -> None:
        args = cli.parse_args([])
        assert args.config == Path("config/config.yaml")
        assert args.labels == []
        assert args.threshold is None
        assert not args.dry_run

    def test_analysis_arguments(self) -> None:
        args = cli.parse_args(
            [
                "--issue-id",
                "123",
                "--title",
                "Update grid",
                "--label",
                "sql",
                "--label",
                "grid",
                "--threshold",
                "0.6",
                "--group",
                "acme/backend",
            ]
        )
        assert args.issue_id == "123"
        assert args.labels == ["sql", "grid"]
        assert args.threshold == 0.6
        assert args.group == "acme/backend"


class TestRunAdvisor:
    """Tests for run_advisor()."""

    async def test_dry_run(self, config_file: Path) -> None:
        args = cli.parse_args(["-c", str(config_file), "--dry-run"])
        assert await cli.run_advisor(args) == 0

    async def test_missing_config_file(self, tmp_path: Path) -> None:
        args = cli.parse_args(["-c", str(tmp_path / "missing.yaml"), "--dry-run"])
        assert await cli.run_advisor(args) == 1

    async def test_missing_issue_arguments(self, config_file: Path) -> None:
        args = cli.parse_args(["-c", str(config_file), "--title", "Update grid"])
        assert await cli.run_advisor(args) == 1

    async def test_invalid_threshold(
        self, config_file: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        original = advisor_module.create_advisor
        monkeypatch.setattr(
            advisor_module,
            "create_advisor",
            lambda config: original(config, store=FakeIssueStore()),
        )
        args = cli.parse_args(
            ["-c", str(config_file), "--issue-id", "1", "--title", "Grid", "--threshold", "2"]
        )
        assert await cli.run_advisor(args) == 1

    async def test_prints_analysis_json(
        self,
        config_file: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
        view_update_diff: str,
    ) -> None:
        store = FakeIssueStore()
        store.add_issue(make_issue(7, "Fix status grid view column display", iid=17))
        store.merge_requests[(42, 17)] = [make_merge_request(5)]
        store.changes[(42, 5)] = [
            ChangeRecord(
                old_path="db/ezConfiguration.sql",
                new_path="db/ezConfiguration.sql",
                diff=view_update_diff,
            )
        ]
        original = advisor_module.create_advisor
        monkeypatch.setattr(
            advisor_module, "create_advisor", lambda config: original(config, store=store)
        )
        args = cli.parse_args(
            ["-c", str(config_file), "--issue-id", "123", "--title", "Update status grid view column"]
        )

        assert await cli.run_advisor(args) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["status"]["suggestions"] == "completed"
        assert output["suggestions"][0]["changeType"] == "VIEW_UPDATE"


class StubGitLab:
    """Answers issue lookups without a GitLab instance."""

    def __init__(self, issues: list[Issue]) -> None:
        self.issues = {issue.id: issue for issue in issues}
        self.assignees: list[str] = []
        self.closed = False

    async def __aenter__(self) -> "StubGitLab":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self.closed = True

    async def get_issue(self, issue_id: int) -> Issue:
        if issue_id not in self.issues:
            raise NotFoundError(f"GitLab resource not found: /issues/{issue_id}")
        return self.issues[issue_id]

    async def list_assigned_issues(self, username: str) -> list[Issue]:
        self.assignees.append(username)
        return list(self.issues.values())


class TestIssueLookupModes:
    """Tests for --assigned-to and title lookup by --issue-id."""

    @pytest.fixture
    def resolvable_store(self, view_update_diff: str) -> FakeIssueStore:
        store = FakeIssueStore()
        store.add_issue(make_issue(7, "Fix status grid view column display", iid=17))
        store.merge_requests[(42, 17)] = [make_merge_request(5)]
        store.changes[(42, 5)] = [
            ChangeRecord(
                old_path="db/ezConfiguration.sql",
                new_path="db/ezConfiguration.sql",
                diff=view_update_diff,
            )
        ]
        return store

    def use_stub(
        self, monkeypatch: pytest.MonkeyPatch, store: FakeIssueStore, stub: StubGitLab
    ) -> None:
        original = advisor_module.create_advisor
        monkeypatch.setattr(
            advisor_module,
            "create_advisor",
            lambda config: (original(config, store=store)[0], stub),
        )

    async def test_lists_assigned_issues(
        self,
        config_file: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        stub = StubGitLab([make_issue(9, "Grid columns missing", labels=["grid"])])
        monkeypatch.setattr(gitlab_module, "GitLabAdapter", lambda config: stub)
        args = cli.parse_args(["-c", str(config_file), "--assigned-to", "jdoe"])

        assert await cli.run_advisor(args) == 0

        output = json.loads(capsys.readouterr().out)
        assert stub.assignees == ["jdoe"]
        assert stub.closed
        assert output == [make_issue(9, "Grid columns missing", labels=["grid"]).to_dict()]

    async def test_title_fetched_by_issue_id(
        self,
        config_file: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
        resolvable_store: FakeIssueStore,
    ) -> None:
        stub = StubGitLab([make_issue(123, "Update status grid view column")])
        self.use_stub(monkeypatch, resolvable_store, stub)
        args = cli.parse_args(["-c", str(config_file), "--issue-id", "123"])

        assert await cli.run_advisor(args) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["suggestions"][0]["changeType"] == "VIEW_UPDATE"
        assert stub.closed

    async def test_non_numeric_issue_id_needs_title(
        self, config_file: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        stub = StubGitLab([])
        self.use_stub(monkeypatch, FakeIssueStore(), stub)
        args = cli.parse_args(["-c", str(config_file), "--issue-id", "ISSUE-123"])

        assert await cli.run_advisor(args) == 1
        assert stub.closed

    async def test_unknown_issue_id(
        self, config_file: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        stub = StubGitLab([])
        self.use_stub(monkeypatch, FakeIssueStore(), stub)
        args = cli.parse_args(["-c", str(config_file), "--issue-id", "404"])

        assert await cli.run_advisor(args) == 1
        assert stub.closed
