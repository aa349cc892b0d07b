"""review command: run a review on a pull request from a developer machine."""

from __future__ import annotations

import click
from rich.console import Console

from prwarden_cli.commands.common import load_run_config, report_verdict
from prwarden_core.config import ConfigError
from prwarden_core.gh.pull_request import get_pull_requests, get_repo
from prwarden_core.reviewer import run_review

console = Console()


@click.command("review")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option(
    "--pr",
    "pr_number",
    type=int,
    default=None,
    help="Pull request number. Omit to list open PRs interactively.",
)
@click.option(
    "--model",
    type=click.Choice(["anthropic", "openai", "together"]),
    default=None,
    help="AI model provider. Overrides config file.",
)
@click.option(
    "--guidelines",
    "guidelines_path",
    default=None,
    help="Path to a Markdown guidelines file. Overrides config file.",
)
@click.option(
    "--mode",
    "comment_mode",
    type=click.Choice(["all", "new", "unresolved"]),
    default=None,
    help="Which reconciled issues to show. Overrides config file.",
)
@click.option(
    "--workspace",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Local checkout of the PR head, for static analysis.",
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompts.")
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print issues without posting to GitHub.",
)
@click.option(
    "--full-review",
    "full_review",
    is_flag=True,
    help="Review the whole PR diff even when incremental reviews are enabled.",
)
@click.pass_context
def review_cmd(
    ctx,
    repo: str,
    pr_number: int | None,
    model: str | None,
    guidelines_path: str | None,
    comment_mode: str | None,
    workspace: str | None,
    yes: bool,
    shadow: bool,
    full_review: bool,
):
    """Review a pull request and reconcile against earlier reviews.

    Each changed hunk is reviewed by the configured model, static analyzers
    run over a local checkout when --workspace is given, and every finding is
    matched against the issues already published on the PR.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub personal access token (or use gh CLI)
      ANTHROPIC_API_KEY    Required when using --model anthropic
      OPENAI_API_KEY       Required when using --model openai
      TOGETHER_API_KEY     Required when using --model together
    """
    config = load_run_config(
        ctx,
        {"model": model, "guidelines": guidelines_path, "comment_mode": comment_mode},
    )

    this_repo = get_repo(repo, token=config["github_token"])

    if pr_number is None:
        prs = list(get_pull_requests(this_repo))
        if not prs:
            console.print("[yellow]No open pull requests found.[/yellow]")
            return
        console.print("\nOpen pull requests:")
        for pr in prs:
            console.print(f"  [bold]#{pr.number}[/bold]  {pr.title}")
        pr_number = click.prompt("\nEnter the pull request number", type=int)

    try:
        outcome = run_review(
            repo=repo,
            pr_number=pr_number,
            config=config,
            auto_confirm=yes,
            shadow=shadow,
            force_full=full_review,
            repo_obj=this_repo,
            workspace=workspace,
        )
    except ConfigError as e:
        raise click.UsageError(str(e))
    except ValueError as e:
        raise click.ClickException(str(e))

    report_verdict(outcome)
