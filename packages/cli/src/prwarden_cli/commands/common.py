"""Helpers shared by the commands that run a review."""

from __future__ import annotations

import click
from rich.console import Console

from prwarden_core.config import ConfigError, load_config

console = Console()


def load_run_config(ctx: click.Context, overrides: dict | None = None) -> dict:
    """Load config for this invocation, turning config problems into usage errors."""
    from prwarden_cli.auth import resolve_github_token

    config_path = (ctx.obj or {}).get("config_path", ".prwarden.yml")
    try:
        config = load_config(config_path, cli_overrides=overrides)
    except ConfigError as e:
        raise click.UsageError(str(e))

    token = resolve_github_token()
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    config["github_token"] = token

    model = config.get("model")
    if model in ("anthropic", "openai", "together") and not config.get(f"{model}_api_key"):
        raise click.UsageError(f"{model.upper()}_API_KEY environment variable is not set.")
    return config


def report_verdict(outcome) -> None:
    """Print the verdict and exit 1 when the run failed its thresholds."""
    if outcome is None:
        return
    verdict = outcome.verdict
    if verdict.passed:
        console.print(f"[green]Verdict: pass. {verdict.reason}[/green]")
        return
    console.print(f"[red]Verdict: fail. {verdict.reason}[/red]")
    raise SystemExit(1)
