"""Everything a run shows to people: comment bodies, the review summary,
quality metrics and the shadow-mode terminal listing."""

from __future__ import annotations

from collections import Counter

from rich.console import Console

from prwarden_core.identity import severity_tag
from prwarden_core.issues import SEVERITY_ORDER, DropStats, Issue, Severity, Status
from prwarden_core.policy import Verdict

console = Console()

_SEVERITY_COLOR = {Severity.CRITICAL: "red", Severity.WARNING: "yellow", Severity.SUGGESTION: "blue"}
_TOP_RULES = 5


def render_comment_body(issue: Issue) -> str:
    """Body of an inline comment: visible tag, then the issue body with its marker."""
    return f"{severity_tag(issue.severity)}\n\n{issue.body}"


def quality_metrics(issues: list[Issue]) -> dict:
    """Aggregate the open static-analysis findings of a run."""
    quality = [i for i in issues if i.source.is_analyzer and i.status is not Status.RESOLVED]
    by_severity = Counter(i.severity for i in quality)
    by_source = Counter(i.source.value for i in quality)
    rules = Counter((i.source.value, i.rule) for i in quality if i.rule)
    return {
        "total": len(quality),
        "bySeverity": {s.value: by_severity.get(s, 0) for s in SEVERITY_ORDER},
        "bySource": dict(sorted(by_source.items())),
        "filesWithIssues": len({i.path for i in quality}),
        "topRules": [
            {"source": source, "rule": rule, "count": count}
            for (source, rule), count in sorted(rules.items(), key=lambda kv: (-kv[1], kv[0]))[:_TOP_RULES]
        ],
    }


def format_quality_metrics(metrics: dict) -> str:
    if not metrics or not metrics.get("total"):
        return "### Code quality\n\nNo static-analysis issues in the changed files."
    sev = metrics["bySeverity"]
    lines = [
        "### Code quality\n",
        f"**{metrics['total']}** issue(s) in **{metrics['filesWithIssues']}** file(s): "
        f"{sev['critical']} critical, {sev['warning']} warning, {sev['suggestion']} suggestion.\n",
        "| Tool | Issues |",
        "|------|:------:|",
    ]
    for source, count in metrics["bySource"].items():
        lines.append(f"| {source} | {count} |")
    if metrics["topRules"]:
        lines.append("\n**Most frequent rules:**")
        for entry in metrics["topRules"]:
            lines.append(f"- `{entry['rule']}` ({entry['source']}): {entry['count']}")
    return "\n".join(lines)


def _format_elapsed(elapsed_seconds: float) -> str:
    elapsed_min = elapsed_seconds / 60
    if elapsed_min < 1:
        return f"{int(elapsed_seconds)}s"
    return f"{elapsed_min:.1f} min"


def build_summary(
    file_summary: list[dict],
    issues: list[Issue],
    verdict: Verdict,
    elapsed_seconds: float,
    stats: DropStats | None = None,
    incremental_info: dict | None = None,
    metrics: dict | None = None,
) -> str:
    """Build the top-level review body posted as the GitHub review description.

    ``issues`` is the displayed list; resolved issues in it are listed here
    rather than posted inline.
    """
    reviewed = [f for f in file_summary if not f["skipped"] and f["error"] is None]
    skipped = [f for f in file_summary if f["skipped"]]
    errors = [f for f in file_summary if f["error"] is not None]

    open_issues = [i for i in issues if i.status is not Status.RESOLVED]
    resolved = [i for i in issues if i.status is Status.RESOLVED]

    # Per-file severity counts.
    file_counts: dict[str, Counter] = {}
    for issue in open_issues:
        file_counts.setdefault(issue.path, Counter())[issue.severity] += 1
    totals = Counter(i.severity for i in open_issues)
    statuses = Counter(i.status for i in open_issues)

    lines = ["## Review summary\n"]

    if incremental_info:
        base = incremental_info["base_sha"][:7]
        head = incremental_info["head_sha"][:7]
        lines.append(f"_Incremental review: `{base}` → `{head}`_\n")

    icon = "✅" if verdict.passed else "❌"
    lines.append(f"> {icon} **{'Passed' if verdict.passed else 'Failed'}**: {verdict.reason}\n")

    if open_issues:
        parts = [f"{totals[s]} {s.value}" for s in SEVERITY_ORDER if totals[s]]
        flagged = sorted(file_counts, key=lambda p: (-sum(file_counts[p].values()), p))
        lines.append(
            f"{', '.join(parts)} issue(s) ({statuses[Status.NEW]} new, {statuses[Status.PERSISTENT]} persistent). "
            f"Most flagged: `{flagged[0]}`.\n"
        )
    else:
        lines.append("No open issues. The changes look good.\n")

    lines.append(
        f"**{len(reviewed)}** file(s) reviewed"
        + (f", **{len(skipped)}** skipped" if skipped else "")
        + (f", **{len(errors)}** error(s)" if errors else "")
        + f" · **{len(open_issues)}** open · **{len(resolved)}** resolved"
        + f" · reviewed in {_format_elapsed(elapsed_seconds)}\n"
    )

    if file_counts:
        lines.append("| File | Critical | Warning | Suggestion | Total |")
        lines.append("|------|:--------:|:-------:|:----------:|:-----:|")
        for path in sorted(file_counts):
            fc = file_counts[path]
            cells = " | ".join(str(fc[s] or "-") for s in SEVERITY_ORDER)
            lines.append(f"| `{path}` | {cells} | {sum(fc.values())} |")

    if resolved:
        lines.append("\n**Resolved since the last review:**")
        for issue in resolved:
            lines.append(f"- `{issue.path}:{issue.line}` {issue.body}")

    if metrics is not None:
        lines.append("\n" + format_quality_metrics(metrics))

    if errors:
        lines.append("\n**Could not fetch:**")
        for f in errors:
            lines.append(f"- `{f['filename']}`: {f['error']}")

    if stats is not None and stats.total:
        lines.append(
            f"\n_Dropped: {stats.discarded} finding(s) without location or text, "
            f"{stats.unanchored} outside the diff, {stats.malformed_history} unreadable past comment(s), "
            f"{stats.producer_failures} failed producer call(s)._"
        )

    return "\n".join(lines)


def print_shadow_issues(issues: list[Issue], code: dict | None = None) -> None:
    """Print reconciled issues to the terminal without posting to GitHub.

    ``code`` optionally maps ``(path, line)`` to the source line shown under
    each issue.
    """
    if not issues:
        console.print("[yellow]Shadow mode: no issues to show.[/yellow]")
        return
    console.print(f"\n[bold]Shadow review: {len(issues)} issue(s) (not posted)[/bold]\n")
    for issue in issues:
        color = _SEVERITY_COLOR.get(issue.severity, "white")
        status = issue.status.value if issue.status else "new"
        console.print(
            f"[bold cyan]{issue.path}[/bold cyan]  line [bold]{issue.line}[/bold]  "
            f"[{color}]{issue.severity.value.upper()}[/{color}]  [dim]{status} · {issue.source.value}[/dim]"
        )
        snippet = (code or {}).get((issue.path, issue.line), "").strip()
        if snippet:
            console.print(f"  [dim]{snippet}[/dim]")
        console.print(f"  {issue.body}", markup=False)
        console.print()
