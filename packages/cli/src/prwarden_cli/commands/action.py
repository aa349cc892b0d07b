"""action command: the GitHub Actions entry point.

Reads the ``pull_request`` webhook payload, reviews the PR without prompting,
publishes ``verdict`` and ``reason`` as step outputs, and exits 1 when the
verdict fails so the workflow check goes red.
"""

from __future__ import annotations

import os

import click
from rich.console import Console

from prwarden_cli.commands.common import load_run_config, report_verdict
from prwarden_core.config import ConfigError
from prwarden_core.gh.pull_request import pr_from_event, read_event
from prwarden_core.issues import Status
from prwarden_core.reviewer import run_review

console = Console()

SUPPORTED_ACTIONS = ("opened", "reopened", "synchronize")


def write_outputs(outputs: dict, path: str | None = None) -> None:
    """Append step outputs to the file named by GITHUB_OUTPUT, if any."""
    path = path or os.environ.get("GITHUB_OUTPUT")
    if not path:
        return
    with open(path, "a", encoding="utf-8") as f:
        for key, value in outputs.items():
            value = str(value).replace("\n", " ")
            f.write(f"{key}={value}\n")


@click.command("action")
@click.option(
    "--event-path",
    default=None,
    envvar="GITHUB_EVENT_PATH",
    help="Webhook payload file. Defaults to $GITHUB_EVENT_PATH.",
)
@click.option(
    "--workspace",
    default=None,
    envvar="GITHUB_WORKSPACE",
    help="Checkout used for static analysis. Defaults to $GITHUB_WORKSPACE.",
)
@click.option("--shadow", "-s", is_flag=True, help="Print issues instead of posting them.")
@click.pass_context
def action_cmd(ctx, event_path: str | None, workspace: str | None, shadow: bool):
    """Review the pull request that triggered the current workflow run."""
    try:
        pr_info = pr_from_event(read_event(event_path))
    except ConfigError as e:
        raise click.UsageError(str(e))

    action = pr_info["action"]
    if action not in SUPPORTED_ACTIONS:
        console.print(f"[yellow]Ignoring pull_request action {action!r}.[/yellow]")
        return

    config = load_run_config(ctx)
    # Only a synchronize event has a meaningful "before" commit.
    base_sha = pr_info["before"] if action == "synchronize" else None

    try:
        outcome = run_review(
            repo=pr_info["repo"],
            pr_number=pr_info["number"],
            config=config,
            auto_confirm=True,
            shadow=shadow,
            force_full=action != "synchronize",
            workspace=workspace,
            base_sha=base_sha,
        )
    except ConfigError as e:
        raise click.UsageError(str(e))
    except ValueError as e:
        raise click.ClickException(str(e))

    if outcome is not None:
        write_outputs(
            {
                "verdict": "pass" if outcome.verdict.passed else "fail",
                "reason": outcome.verdict.reason,
                "issues": sum(1 for i in outcome.issues if i.status is not Status.RESOLVED),
            }
        )
    report_verdict(outcome)
