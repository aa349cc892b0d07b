"""Tests for the CLI entry point."""

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import yaml
from click.testing import CliRunner

from prwarden_cli.cli import main
from prwarden_cli.commands.action import write_outputs
from prwarden_core.config import ConfigError
from prwarden_core.issues import Issue, Severity, Status
from prwarden_core.policy import Verdict
from prwarden_core.reviewer import ReviewOutcome

SHA = "a" * 40


def _make_config(model="anthropic", anthropic_key="ant", openai_key=None):
    return {
        "model": model,
        "anthropic_api_key": anthropic_key,
        "openai_api_key": openai_key,
        "together_api_key": None,
        "guidelines": None,
        "exclude": [],
        "review_draft_prs": False,
        "max_chars_per_file": 20000,
        "batch_limit": 60,
        "comment_mode": "all",
    }


def _patch_common(mocker, config=None, token="tok"):
    """Patch load_config and resolve_github_token for most tests."""
    cfg = config or _make_config()
    load = mocker.patch("prwarden_cli.commands.common.load_config", return_value=cfg)
    mocker.patch("prwarden_cli.auth.resolve_github_token", return_value=token)
    return cfg, load


def _outcome(passed=True, reason="All severity thresholds satisfied."):
    issue = Issue("a.py", 1, "b", Severity.WARNING, id="x", status=Status.NEW)
    return ReviewOutcome(
        repo="owner/repo",
        pr_number=1,
        head_sha=SHA,
        event="COMMENT",
        verdict=Verdict(passed, reason),
        issues=[issue],
    )


class TestCLIValidation:
    def test_missing_github_token(self, mocker):
        _patch_common(mocker, token=None)

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "GITHUB_TOKEN" in result.output

    def test_missing_anthropic_key(self, mocker):
        _patch_common(mocker, config=_make_config(model="anthropic", anthropic_key=None))

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "ANTHROPIC_API_KEY" in result.output

    def test_missing_openai_key(self, mocker):
        _patch_common(mocker, config=_make_config(model="openai", anthropic_key=None, openai_key=None))

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "OPENAI_API_KEY" in result.output

    def test_config_error_is_usage_error(self, mocker):
        mocker.patch("prwarden_cli.commands.common.load_config", side_effect=ConfigError("bad comment_mode"))

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code == 2
        assert "bad comment_mode" in result.output


class TestCLIRunReview:
    def test_calls_run_review_with_correct_args(self, mocker):
        _patch_common(mocker)
        repo = MagicMock()
        mocker.patch("prwarden_cli.commands.review.get_repo", return_value=repo)
        mock_run = mocker.patch("prwarden_cli.commands.review.run_review", return_value=None)

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "42", "--yes"])

        assert result.exit_code == 0
        kwargs = mock_run.call_args.kwargs
        assert kwargs["pr_number"] == 42
        assert kwargs["auto_confirm"] is True
        assert kwargs["shadow"] is False
        assert kwargs["force_full"] is False
        assert kwargs["repo_obj"] is repo
        assert kwargs["config"]["github_token"] == "tok"

    def test_flags_passed_through(self, mocker, tmp_path):
        _patch_common(mocker)
        mocker.patch("prwarden_cli.commands.review.get_repo", return_value=MagicMock())
        mock_run = mocker.patch("prwarden_cli.commands.review.run_review", return_value=None)

        CliRunner().invoke(
            main,
            ["review", "--repo", "o/r", "--pr", "1", "--shadow", "--full-review", "--workspace", str(tmp_path)],
        )

        kwargs = mock_run.call_args.kwargs
        assert kwargs["shadow"] is True
        assert kwargs["force_full"] is True
        assert kwargs["workspace"] == str(tmp_path)

    def test_overrides_reach_config(self, mocker):
        _, load = _patch_common(mocker)
        mocker.patch("prwarden_cli.commands.review.get_repo", return_value=MagicMock())
        mocker.patch("prwarden_cli.commands.review.run_review", return_value=None)

        CliRunner().invoke(
            main,
            ["--config", "custom.yml", "review", "--repo", "o/r", "--pr", "1", "--mode", "new", "--model", "openai"],
        )

        load.assert_called_once_with(
            "custom.yml", cli_overrides={"model": "openai", "guidelines": None, "comment_mode": "new"}
        )

    def test_failed_verdict_exits_1(self, mocker):
        _patch_common(mocker)
        mocker.patch("prwarden_cli.commands.review.get_repo", return_value=MagicMock())
        mocker.patch(
            "prwarden_cli.commands.review.run_review",
            return_value=_outcome(False, "Found 1 critical issue(s); at most 0 allowed."),
        )

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1", "--yes"])

        assert result.exit_code == 1
        assert "Found 1 critical issue(s)" in result.output

    def test_passed_verdict_exits_0(self, mocker):
        _patch_common(mocker)
        mocker.patch("prwarden_cli.commands.review.get_repo", return_value=MagicMock())
        mocker.patch("prwarden_cli.commands.review.run_review", return_value=_outcome())

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1", "--yes"])

        assert result.exit_code == 0
        assert "Verdict: pass" in result.output


class TestCLIInteractive:
    def test_lists_open_prs(self, mocker):
        _patch_common(mocker)
        mocker.patch("prwarden_cli.commands.review.get_repo", return_value=MagicMock())
        mock_pr = MagicMock()
        mock_pr.number = 7
        mock_pr.title = "Fix login bug"
        mocker.patch("prwarden_cli.commands.review.get_pull_requests", return_value=[mock_pr])
        mock_run = mocker.patch("prwarden_cli.commands.review.run_review", return_value=None)

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo"], input="7\n")

        assert "#7" in result.output
        assert "Fix login bug" in result.output
        assert mock_run.call_args.kwargs["pr_number"] == 7

    def test_no_open_prs_exits_early(self, mocker):
        _patch_common(mocker)
        mocker.patch("prwarden_cli.commands.review.get_repo", return_value=MagicMock())
        mocker.patch("prwarden_cli.commands.review.get_pull_requests", return_value=[])
        mock_run = mocker.patch("prwarden_cli.commands.review.run_review", return_value=None)

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo"])

        assert "No open pull requests" in result.output
        mock_run.assert_not_called()


# ---------------------------------------------------------------------------
# action command
# ---------------------------------------------------------------------------


def _event_file(tmp_path, action="synchronize"):
    path = tmp_path / "event.json"
    path.write_text(
        json.dumps(
            {
                "action": action,
                "number": 5,
                "before": "b" * 40,
                "after": SHA,
                "pull_request": {"number": 5, "head": {"sha": SHA}},
                "repository": {"full_name": "owner/repo"},
            }
        )
    )
    return str(path)


class TestActionCommand:
    def test_synchronize_passes_before_sha(self, mocker, tmp_path):
        _patch_common(mocker)
        mock_run = mocker.patch("prwarden_cli.commands.action.run_review", return_value=_outcome())
        output = tmp_path / "out.txt"

        result = CliRunner().invoke(
            main,
            ["action", "--event-path", _event_file(tmp_path), "--workspace", str(tmp_path)],
            env={"GITHUB_OUTPUT": str(output)},
        )

        assert result.exit_code == 0
        kwargs = mock_run.call_args.kwargs
        assert kwargs["repo"] == "owner/repo"
        assert kwargs["pr_number"] == 5
        assert kwargs["auto_confirm"] is True
        assert kwargs["force_full"] is False
        assert kwargs["base_sha"] == "b" * 40
        assert kwargs["workspace"] == str(tmp_path)
        assert "verdict=pass" in output.read_text()

    def test_opened_is_full_review(self, mocker, tmp_path):
        _patch_common(mocker)
        mock_run = mocker.patch("prwarden_cli.commands.action.run_review", return_value=None)

        CliRunner().invoke(main, ["action", "--event-path", _event_file(tmp_path, "opened")])

        kwargs = mock_run.call_args.kwargs
        assert kwargs["force_full"] is True
        assert kwargs["base_sha"] is None

    def test_unsupported_action_is_skipped(self, mocker, tmp_path):
        _patch_common(mocker)
        mock_run = mocker.patch("prwarden_cli.commands.action.run_review")

        result = CliRunner().invoke(main, ["action", "--event-path", _event_file(tmp_path, "labeled")])

        assert result.exit_code == 0
        mock_run.assert_not_called()

    def test_failed_verdict_exits_1_and_writes_outputs(self, mocker, tmp_path):
        _patch_common(mocker)
        mocker.patch("prwarden_cli.commands.action.run_review", return_value=_outcome(False, "Found 3 warning issue(s)"))
        output = tmp_path / "out.txt"

        result = CliRunner().invoke(
            main, ["action", "--event-path", _event_file(tmp_path)], env={"GITHUB_OUTPUT": str(output)}
        )

        assert result.exit_code == 1
        text = output.read_text()
        assert "verdict=fail" in text
        assert "reason=Found 3 warning issue(s)" in text
        assert "issues=1" in text

    def test_action_yml_declares_every_written_output(self, mocker, tmp_path):
        _patch_common(mocker)
        mocker.patch("prwarden_cli.commands.action.run_review", return_value=_outcome(True, "ok"))
        output = tmp_path / "out.txt"

        CliRunner().invoke(
            main, ["action", "--event-path", _event_file(tmp_path)], env={"GITHUB_OUTPUT": str(output)}
        )

        written = {line.split("=", 1)[0] for line in output.read_text().splitlines() if "=" in line}
        action = yaml.safe_load((Path(__file__).parents[3] / "action.yml").read_text())
        assert written == {"verdict", "reason", "issues"}
        assert written <= set(action["outputs"])

    def test_missing_event_is_fatal(self, mocker, tmp_path):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["action"], env={"GITHUB_EVENT_PATH": ""})
        assert result.exit_code == 2
        assert "GITHUB_EVENT_PATH" in result.output


def test_write_outputs_without_env_is_noop(monkeypatch):
    monkeypatch.delenv("GITHUB_OUTPUT", raising=False)
    write_outputs({"verdict": "pass"})


# ---------------------------------------------------------------------------
# history command
# ---------------------------------------------------------------------------


class TestHistoryCommand:
    def _comment(self, body, line=3):
        c = MagicMock()
        c.path = "src/a.py"
        c.line = line
        c.body = body
        c.commit_id = SHA
        c.created_at = None
        return c

    def test_shows_tracked_issues(self, mocker):
        mocker.patch("prwarden_cli.commands.history.resolve_github_token", return_value="tok")
        mocker.patch("prwarden_cli.commands.history.get_repo")
        mocker.patch("prwarden_cli.commands.history.get_pull")
        mocker.patch(
            "prwarden_cli.commands.history.get_review_comments",
            return_value=[self._comment("**[CRITICAL]**\n\nSQL injection"), self._comment("thanks!")],
        )

        result = CliRunner().invoke(main, ["history", "--repo", "owner/repo", "--pr", "4"], env={"COLUMNS": "200"})

        assert result.exit_code == 0
        assert "SQL injection" in result.output
        assert "critical" in result.output

    def test_empty(self, mocker):
        mocker.patch("prwarden_cli.commands.history.resolve_github_token", return_value="tok")
        mocker.patch("prwarden_cli.commands.history.get_repo")
        mocker.patch("prwarden_cli.commands.history.get_pull")
        mocker.patch("prwarden_cli.commands.history.get_review_comments", return_value=[])

        result = CliRunner().invoke(main, ["history", "--repo", "owner/repo", "--pr", "4"])

        assert "No tracked issues" in result.output

    def test_requires_token(self, mocker):
        mocker.patch("prwarden_cli.commands.history.resolve_github_token", return_value=None)
        result = CliRunner().invoke(main, ["history", "--repo", "owner/repo", "--pr", "4"])
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# auth.py
# ---------------------------------------------------------------------------


class TestResolveGithubToken:
    def test_action_input_wins(self, monkeypatch):
        from prwarden_cli.auth import resolve_github_token

        monkeypatch.setenv("INPUT_GITHUB_TOKEN", "input-token")
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert resolve_github_token() == "input-token"

    def test_returns_env_var_when_set(self, monkeypatch):
        from prwarden_cli.auth import resolve_github_token

        monkeypatch.delenv("INPUT_GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert resolve_github_token() == "env-token"

    def test_falls_back_to_gh_cli(self, monkeypatch):
        from prwarden_cli.auth import resolve_github_token

        monkeypatch.delenv("INPUT_GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="gh-token\n")
            result = resolve_github_token()
        assert result == "gh-token"

    def test_returns_none_when_gh_not_installed(self, monkeypatch):
        from prwarden_cli.auth import resolve_github_token

        monkeypatch.delenv("INPUT_GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=FileNotFoundError):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_times_out(self, monkeypatch):
        from prwarden_cli.auth import resolve_github_token

        monkeypatch.delenv("INPUT_GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5)):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_returns_empty(self, monkeypatch):
        from prwarden_cli.auth import resolve_github_token

        monkeypatch.delenv("INPUT_GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="   ")
            result = resolve_github_token()
        assert result is None
