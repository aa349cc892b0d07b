"""Core PR review orchestration."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from github import GithubException
from rich.console import Console

from prwarden_core.analyzers.registry import run_quality_tools
from prwarden_core.config import ConfigError, load_guidelines
from prwarden_core.diff import anchor_issue, anchor_lines, get_diff_positions, get_patch_line_content, parse_hunks
from prwarden_core.gh.pull_request import (
    SHA_MARKER,
    get_diff,
    get_incremental_files,
    get_last_reviewed_sha,
    get_pull,
    get_repo,
    get_review_comments,
)
from prwarden_core.history import load_history
from prwarden_core.issues import DropStats, Issue, Producer, Severity, Status, normalize_findings
from prwarden_core.policy import ReviewPolicy, Verdict
from prwarden_core.providers.anthropic import AnthropicReviewer
from prwarden_core.providers.openai import OpenAIReviewer, TogetherReviewer
from prwarden_core.reconciler import reconcile
from prwarden_core.report import build_summary, print_shadow_issues, quality_metrics, render_comment_body
from prwarden_core.utils.paths import is_code_file, is_excluded

console = Console()
logger = logging.getLogger(__name__)

_PROVIDERS = {
    "anthropic": AnthropicReviewer,
    "openai": OpenAIReviewer,
    "together": TogetherReviewer,
}


@dataclass
class ReviewOutcome:
    """Result returned by run_review; the CLI turns ``verdict`` into an exit code."""

    repo: str
    pr_number: int
    head_sha: str
    event: str  # "APPROVE" | "COMMENT" | "REQUEST_CHANGES"
    verdict: Verdict
    issues: list[Issue] = field(default_factory=list)  # every reconciled issue
    displayed: list[Issue] = field(default_factory=list)
    stats: DropStats = field(default_factory=DropStats)
    metrics: dict | None = None
    reviewed_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    total_comments: int = 0
    reviewed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def _get_reviewer(config: dict):
    model = config["model"]
    provider = _PROVIDERS.get(model)
    if provider is None:
        raise ConfigError(f"Unknown model provider: {model!r}. Choose 'anthropic', 'openai' or 'together'.")
    api_key = config.get(f"{model}_api_key")
    if not api_key:
        raise ConfigError(f"No API key for {model}. Set {model.upper()}_API_KEY.")
    return provider(api_key=api_key, model=config.get("model_name"))


def _determine_event(issues: list[Issue]) -> str:
    """Choose the GitHub review event from the issues posted inline."""
    if not issues:
        return "APPROVE"
    if any(i.severity in (Severity.CRITICAL, Severity.WARNING) for i in issues):
        return "REQUEST_CHANGES"
    return "COMMENT"


def _collect_diff(this_repo, this_pr, config: dict, force_full: bool, base_sha: str | None):
    """Return ``(files, incremental_info)``.

    With ``incremental`` set, only the commits since ``base_sha`` (or the last
    reviewed head) are diffed. Returns ``(None, None)`` when there is nothing
    new to review.
    """
    head_sha = this_pr.head.sha
    if force_full or not config.get("incremental"):
        return sorted(get_diff(this_pr), key=lambda f: f.filename), None

    base = base_sha or get_last_reviewed_sha(this_pr)
    if not base:
        return sorted(get_diff(this_pr), key=lambda f: f.filename), None
    if base == head_sha:
        console.print("[yellow]No new commits since the last review. Nothing to do.[/yellow]")
        return None, None
    try:
        files = sorted(get_incremental_files(this_repo, base, head_sha), key=lambda f: f.filename)
    except GithubException:
        console.print("[yellow]Could not compute incremental diff (force push?). Falling back to full review.[/yellow]")
        return sorted(get_diff(this_pr), key=lambda f: f.filename), None
    console.print(f"[cyan]Incremental review: {base[:7]} → {head_sha[:7]} ({len(files)} file(s) changed)[/cyan]")
    return files, {"base_sha": base, "head_sha": head_sha}


def review_file(
    reviewer,
    title: str,
    description: str,
    filename: str,
    patch: str,
    file_content: str,
    guidelines: str,
    stats: DropStats,
) -> list[Issue]:
    """Ask the model about every hunk of one file and anchor what comes back.

    Each finding is anchored to the lines of the hunk it was reported for.
    """
    issues = []
    for hunk in parse_hunks(patch):
        raw = reviewer.review(
            title=title,
            description=description,
            file_name=filename,
            hunk=hunk.annotated(),
            file_content=file_content,
            guidelines=guidelines,
        )
        for issue in normalize_findings(raw, Producer.AI, default_path=filename, stats=stats):
            # The model only sees one file; a path it invents is ignored.
            if issue.path != filename:
                issue = replace(issue, path=filename)
            anchored = anchor_issue(issue, hunk.lines, stats)
            if anchored is not None:
                issues.append(anchored)
    return issues


def _quality_issues(config: dict, workspace: str, anchors: dict[str, list[int]], stats: DropStats) -> list[Issue]:
    issues = []
    for result in run_quality_tools(config, workspace, sorted(anchors)):
        if result.failed:
            stats.producer_failures += 1
        for issue in normalize_findings(result.findings, result.producer, stats=stats):
            anchored = anchor_issue(issue, anchors.get(issue.path, ()), stats)
            if anchored is not None:
                issues.append(anchored)
    return issues


def _confirm(prompt: str) -> bool:
    return input(f"{prompt} (y/n): ").strip().lower() == "y"


def run_review(
    repo: str,
    pr_number: int,
    config: dict,
    auto_confirm: bool = False,
    shadow: bool = False,
    force_full: bool = False,
    repo_obj=None,
    workspace: str | None = None,
    base_sha: str | None = None,
) -> ReviewOutcome | None:
    """Run the full PR review pipeline and return a ReviewOutcome.

    Returns None on early exits (draft skip, no new commits, posting declined
    at the prompt). The verdict is computed in every other case, including
    shadow mode.
    """
    # Bad thresholds or comment mode should fail before any API call is made.
    policy = ReviewPolicy.from_config(config)

    this_repo = repo_obj if repo_obj is not None else get_repo(repo, token=config["github_token"])

    try:
        this_pr = get_pull(this_repo, pr_number)
    except GithubException:
        raise ValueError(f"PR #{pr_number} not found in {repo}.")

    if this_pr.draft and not config.get("review_draft_prs", False):
        console.print("[yellow]Skipping draft PR. Set review_draft_prs: true in .prwarden.yml to review drafts.[/yellow]")
        return None

    head_sha = this_pr.head.sha
    diff_files, incremental_info = _collect_diff(this_repo, this_pr, config, force_full, base_sha)
    if diff_files is None:
        return None

    title = this_pr.title or ""
    pr_body = this_pr.body or ""
    reviewer = _get_reviewer(config)
    guidelines = load_guidelines(config)
    max_chars = config.get("max_chars_per_file", 20000)
    batch_limit = max(1, int(config.get("batch_limit", 60)))
    exclude_patterns = config.get("exclude", [])

    stats = DropStats()
    current: list[Issue] = []
    file_summary: list[dict] = []
    anchors: dict[str, list[int]] = {}
    positions: dict[str, dict[int, int]] = {}
    patches: dict[str, str] = {}
    review_start = time.monotonic()
    total = len(diff_files)

    for i, file in enumerate(diff_files, 1):
        patch = file.patch or ""
        if (
            is_excluded(file.filename, exclude_patterns)
            or not is_code_file(file.filename)
            or file.status == "removed"
            or not patch
        ):
            console.print(f"  Skipping: {file.filename}")
            file_summary.append({"filename": file.filename, "count": 0, "skipped": True, "error": None})
            continue

        anchors[file.filename] = anchor_lines(patch)
        positions[file.filename] = get_diff_positions(patch)
        patches[file.filename] = patch

        console.print(f"\n[[{i}/{total}]] Reviewing: {file.filename}")

        try:
            file_content = this_repo.get_contents(file.filename, ref=head_sha).decoded_content.decode(
                "utf-8", errors="replace"
            )
        except GithubException as e:
            console.print(f"  [red]Could not fetch file: {e}[/red]")
            file_summary.append({"filename": file.filename, "count": 0, "skipped": False, "error": str(e)})
            continue

        if len(patch) > max_chars:
            patch = patch[:max_chars]
        if len(file_content) > max_chars:
            file_content = file_content[:max_chars] + "\n... [file truncated]"

        found = review_file(reviewer, title, pr_body, file.filename, patch, file_content, guidelines, stats)
        current.extend(found)
        file_summary.append({"filename": file.filename, "count": len(found), "skipped": False, "error": None})
        console.print(f"  {len(found)} finding(s).")

    stats.producer_failures += reviewer.failed_calls

    metrics = None
    if config.get("enable_quality_metrics", True):
        workspace = workspace or os.environ.get("GITHUB_WORKSPACE")
        if workspace and os.path.isdir(workspace):
            current.extend(_quality_issues(config, workspace, anchors, stats))
        else:
            logger.info("No local checkout available; static analysis skipped.")

    history = load_history(get_review_comments(this_pr), stats)
    if incremental_info:
        # Files outside the incremental diff were not re-examined, so their
        # history must not be read as resolved.
        diffed = {f.filename for f in diff_files}
        history = [record for record in history if record.issue.path in diffed]
    history_ids = {record.id for record in history}

    reconciled = reconcile(current, history, head_sha)
    displayed = policy.display(reconciled, history_ids)
    verdict = policy.verdict(reconciled)
    if config.get("enable_quality_metrics", True):
        metrics = quality_metrics(reconciled)

    inline = [
        issue
        for issue in displayed
        if issue.status is not Status.RESOLVED and issue.line in positions.get(issue.path, {})
    ]
    event = _determine_event(inline)
    if event == "APPROVE" and not verdict.passed:
        # Hidden by the comment mode but still over a threshold.
        event = "COMMENT"

    outcome = ReviewOutcome(
        repo=repo,
        pr_number=pr_number,
        head_sha=head_sha,
        event=event,
        verdict=verdict,
        issues=reconciled,
        displayed=displayed,
        stats=stats,
        metrics=metrics,
        reviewed_files=[f["filename"] for f in file_summary if not f["skipped"] and f["error"] is None],
        skipped_files=[f["filename"] for f in file_summary if f["skipped"]],
        total_comments=len(inline),
    )

    if shadow:
        code = {
            (issue.path, issue.line): get_patch_line_content(patches.get(issue.path, ""), issue.line)
            for issue in displayed
        }
        print_shadow_issues(displayed, code)
        console.print(
            f"[bold]Shadow review complete. {len(inline)} comment(s) would be posted; "
            f"verdict: {'pass' if verdict.passed else 'fail'} ({verdict.reason})[/bold]"
        )
        return outcome

    elapsed = time.monotonic() - review_start
    summary_body = (
        build_summary(file_summary, displayed, verdict, elapsed, stats, incremental_info, metrics)
        + "\n"
        + SHA_MARKER.format(sha=head_sha)
    )

    if not inline:
        if not auto_confirm and not _confirm(f"No inline comments. Post {event} review?"):
            return None
        this_pr.create_review(body=summary_body, event=event)
        console.print(f"\n[green]Review posted: {event}[/green]")
        return outcome

    if not auto_confirm and not _confirm(f"Post {len(inline)} comment(s) as {event}?"):
        return None

    batches = [inline[i : i + batch_limit] for i in range(0, len(inline), batch_limit)]
    total_posted = 0
    for idx, batch in enumerate(batches):
        is_last = idx == len(batches) - 1
        batch_body = (
            summary_body if is_last else f"Review in progress ({total_posted + len(batch)}/{len(inline)} comments)..."
        )
        batch_event = event if is_last else "COMMENT"
        api_comments = [
            {"path": issue.path, "position": positions[issue.path][issue.line], "body": render_comment_body(issue)}
            for issue in batch
        ]
        this_pr.create_review(body=batch_body, event=batch_event, comments=api_comments)
        total_posted += len(batch)

    console.print(
        f"\n[green]Review posted: {event}. {total_posted} comment(s) across {len(outcome.reviewed_files)} file(s).[/green]"
    )
    return outcome
