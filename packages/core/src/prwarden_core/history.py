"""Rebuild review history from previously published PR comments."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from prwarden_core.identity import (
    MarkerError,
    decode_fingerprint,
    fingerprint,
    parse_marker,
    parse_severity_tag,
    strip_markup,
)
from prwarden_core.issues import DropStats, Issue, Producer, Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoricalComment:
    """One previously published finding, recovered from its comment text.

    ``issue`` is a snapshot of the finding as it was published: its path,
    line, severity and body with all of our markup stripped.
    """

    id: str
    commit_sha: str | None
    timestamp: str | None
    issue: Issue
    status: str = "active"


def _field(comment, name: str):
    # PyGithub PullRequestComment objects and plain dicts are both accepted.
    if isinstance(comment, dict):
        return comment.get(name)
    return getattr(comment, name, None)


def _comment_line(comment) -> int | None:
    # ``line`` is None once the commented line has left the current diff
    # (e.g. after a force-push); ``original_line`` still has it.
    for name in ("line", "original_line"):
        value = _field(comment, name)
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            return value
    return None


def _timestamp(value) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value) if value else None


def parse_comment(comment) -> HistoricalComment | None:
    """Recover a HistoricalComment, or None if the comment is not one of ours.

    Raises MarkerError when the comment is ours but cannot be used.
    """
    body = _field(comment, "body") or ""
    if not isinstance(body, str):
        raise MarkerError(f"comment body is {type(body).__name__}, not text")

    marker = parse_marker(body)
    tag = parse_severity_tag(body)
    if marker is None and tag is None:
        return None

    path = _field(comment, "path")
    line = _comment_line(comment)
    if marker is not None and (not path or line is None):
        # The id encodes where the issue was first published.
        decoded = decode_fingerprint(marker["id"])
        if decoded is not None:
            path = path or decoded[0]
            line = line if line is not None else decoded[1]
    if not path or line is None:
        raise MarkerError("comment has no file path or line")

    snapshot_body = strip_markup(body)
    if marker is not None:
        issue_id = marker["id"]
        commit_sha = marker.get("sha") or _field(comment, "commit_id")
        severity = tag or Severity.parse(marker.get("severity")) or Severity.WARNING
        source = Producer.parse(marker.get("source")) or Producer.AI
        rule = marker.get("rule")
    else:
        # Hidden marker stripped by the platform: the visible tag is still
        # ours, and the id can be recomputed from what is left.
        issue_id = fingerprint(path, line, snapshot_body)
        commit_sha = _field(comment, "commit_id")
        severity = tag
        source = Producer.AI
        rule = None

    issue = Issue(
        path=path,
        line=line,
        body=snapshot_body,
        severity=severity,
        source=source,
        rule=rule,
        id=issue_id,
    )
    return HistoricalComment(
        id=issue_id,
        commit_sha=commit_sha if isinstance(commit_sha, str) else None,
        timestamp=_timestamp(_field(comment, "created_at")),
        issue=issue,
    )


def load_history(comments, stats: DropStats | None = None) -> list[HistoricalComment]:
    """Parse every comment on a PR, skipping the ones that are not ours.

    A damaged marker on one comment is logged and skipped; it never stops
    the rest from loading.
    """
    records: list[HistoricalComment] = []
    for comment in comments or []:
        try:
            record = parse_comment(comment)
        except MarkerError as e:
            logger.warning("Skipping malformed review comment %s: %s", _field(comment, "id") or "?", e)
            if stats is not None:
                stats.malformed_history += 1
            continue
        if record is not None:
            records.append(record)
    logger.debug("Recovered %d historical issue(s) from PR comments.", len(records))
    return records
