"""CLI entry point for prwarden.

Commands:
  review   run a review on a pull request from a developer machine
  action   GitHub Actions entry point driven by the workflow event payload
  history  show the issues recovered from a PR's published review comments
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prwarden_cli.commands.action import action_cmd
from prwarden_cli.commands.history import history_cmd
from prwarden_cli.commands.review import review_cmd

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # PyGithub and the SDK HTTP clients are chatty at DEBUG.
    for noisy in ("github", "urllib3", "httpx", "httpcore", "anthropic", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@click.group()
@click.version_option(
    version=importlib.metadata.version("prwarden"),
    prog_name="prwarden",
)
@click.option(
    "--config",
    "config_path",
    default=".prwarden.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRWARDEN_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Incremental AI and static-analysis PR reviewer with tracked issues."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(review_cmd)
main.add_command(action_cmd)
main.add_command(history_cmd)
