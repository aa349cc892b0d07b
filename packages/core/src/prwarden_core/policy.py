"""Comment visibility and the pass/fail verdict.

Two independent decisions live here:

- which reconciled issues are shown (``filter_for_display``), driven by the
  comment mode;
- whether the run passes (``evaluate``), driven by per-tier thresholds.

Tiers are checked most severe first and the first breach wins, so the
reported reason always names the worst problem even when several
thresholds are exceeded at once.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from prwarden_core.config import ConfigError
from prwarden_core.issues import SEVERITY_ORDER, Issue, Severity, Status

# Any negative threshold means "no limit"; -1 is the documented spelling.
UNBOUNDED = -1


class CommentMode(str, Enum):
    ALL = "all"
    NEW = "new"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class Thresholds:
    critical: int = 0
    warning: int = UNBOUNDED
    suggestion: int = UNBOUNDED

    def limit_for(self, severity: Severity) -> int | None:
        """Return the cap for a tier, or None if the tier is unbounded."""
        value = getattr(self, severity.value)
        if value is None or value < 0:
            return None
        return value


@dataclass(frozen=True)
class Verdict:
    passed: bool
    reason: str
    severity: Severity | None = None


def filter_for_display(
    issues: list[Issue],
    mode: CommentMode,
    history_ids: Iterable[str] = (),
) -> list[Issue]:
    """Select the issues to show for ``mode``.

    ``new`` is stricter than ``status == new``: an issue whose id was ever
    published before is not a first appearance and is hidden as well.
    """
    mode = CommentMode(mode)
    if mode is CommentMode.ALL:
        return list(issues)
    if mode is CommentMode.UNRESOLVED:
        return [i for i in issues if i.status is not Status.RESOLVED]
    seen = set(history_ids)
    return [i for i in issues if i.status is Status.NEW and i.id not in seen]


def count_by_severity(issues: list[Issue]) -> dict[Severity, int]:
    """Count issues per tier, ignoring resolved ones."""
    counts = {severity: 0 for severity in SEVERITY_ORDER}
    for issue in issues:
        if issue.status is Status.RESOLVED:
            continue
        counts[issue.severity] = counts.get(issue.severity, 0) + 1
    return counts


def evaluate(counts: dict[Severity, int], thresholds: Thresholds) -> Verdict:
    for severity in SEVERITY_ORDER:
        limit = thresholds.limit_for(severity)
        count = counts.get(severity, 0)
        if limit is not None and count > limit:
            return Verdict(
                passed=False,
                reason=f"Found {count} {severity.value} issue(s); at most {limit} allowed.",
                severity=severity,
            )
    return Verdict(passed=True, reason="All severity thresholds satisfied.")


def _threshold(config: dict, key: str, default: int) -> int:
    value = config.get(key, default)
    if value is None:
        return UNBOUNDED
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer, got: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key} must be an integer, got: {value!r}") from e


@dataclass(frozen=True)
class ReviewPolicy:
    """Everything the verdict and display filter need, built once per run."""

    mode: CommentMode = CommentMode.ALL
    thresholds: Thresholds = Thresholds()
    fail_on_quality_issues: bool = False

    @classmethod
    def from_config(cls, config: dict) -> ReviewPolicy:
        raw_mode = str(config.get("comment_mode") or "all").strip().lower()
        try:
            mode = CommentMode(raw_mode)
        except ValueError as e:
            raise ConfigError(
                f"Unknown comment_mode: {raw_mode!r}. Choose 'all', 'new' or 'unresolved'."
            ) from e
        return cls(
            mode=mode,
            thresholds=Thresholds(
                critical=_threshold(config, "max_critical_issues", 0),
                warning=_threshold(config, "max_warning_issues", UNBOUNDED),
                suggestion=_threshold(config, "max_suggestion_issues", UNBOUNDED),
            ),
            fail_on_quality_issues=bool(config.get("fail_on_quality_issues", False)),
        )

    def display(self, issues: list[Issue], history_ids: Iterable[str] = ()) -> list[Issue]:
        return filter_for_display(issues, self.mode, history_ids)

    def verdict(self, issues: list[Issue]) -> Verdict:
        result = evaluate(count_by_severity(issues), self.thresholds)
        if not result.passed or not self.fail_on_quality_issues:
            return result
        quality = [i for i in issues if i.source.is_analyzer and i.status is not Status.RESOLVED]
        if quality:
            return Verdict(
                passed=False,
                reason=f"Found {len(quality)} unresolved static-analysis issue(s) and fail_on_quality_issues is set.",
                severity=max((i.severity for i in quality), key=lambda s: s.rank),
            )
        return result
