"""history command: show the issues recovered from a PR's review comments."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from prwarden_cli.auth import resolve_github_token
from prwarden_core.gh.pull_request import get_pull, get_repo, get_review_comments
from prwarden_core.history import load_history
from prwarden_core.issues import DropStats

console = Console()

_SEVERITY_STYLE = {
    "critical": "red",
    "warning": "yellow",
    "suggestion": "blue",
}


@click.command("history")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option("--limit", default=50, show_default=True, help="Maximum number of issues to show.")
def history_cmd(repo: str, pr_number: int, limit: int):
    """Show the tracked issues published on a pull request.

    Every comment prwarden posts carries a hidden marker; this lists what
    those markers say, newest first, one row per issue id.
    """
    token = resolve_github_token()
    if not token:
        raise click.UsageError("No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.")

    pr = get_pull(get_repo(repo, token=token), pr_number)
    stats = DropStats()
    records = load_history(get_review_comments(pr), stats)
    if not records:
        console.print("[yellow]No tracked issues found on this pull request.[/yellow]")
        return

    latest = {}
    for r in records:
        latest[r.id] = r
    rows = sorted(latest.values(), key=lambda r: r.timestamp or "", reverse=True)[:limit]

    table = Table(title=f"Tracked issues: {repo}#{pr_number}", show_header=True, header_style="bold cyan")
    table.add_column("File", max_width=40)
    table.add_column("Line", justify="right", width=6)
    table.add_column("Severity", width=11)
    table.add_column("Source", width=10)
    table.add_column("SHA", width=8)
    table.add_column("Issue", max_width=60)
    table.add_column("Posted At", width=20)

    for r in rows:
        severity = r.issue.severity.value
        style = _SEVERITY_STYLE.get(severity, "white")
        table.add_row(
            r.issue.path,
            str(r.issue.line),
            f"[{style}]{severity}[/{style}]",
            r.issue.source.value,
            (r.commit_sha or "")[:7],
            r.issue.body.splitlines()[0][:60] if r.issue.body else "",
            (r.timestamp or "")[:19].replace("T", " "),
        )

    console.print(table)
    if stats.malformed_history:
        console.print(f"[dim]{stats.malformed_history} comment(s) had unreadable markers.[/dim]")
