"""Classify current findings against the history recovered from the PR.

Each run sees a complete snapshot of both sides: every finding for the
current commit and every historical record parsed from published comments.
The result is one list in which every issue carries a status:

- ``persistent``: a historical record sits on the same path, within
  ``LINE_TOLERANCE`` lines, with exactly the same stripped body;
- ``new``: no such record;
- ``resolved``: a historical id that no current finding carries and that
  no current finding matched.

Matching is exact on text. Fuzzy similarity would merge unrelated findings
that happen to read alike.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from prwarden_core.history import HistoricalComment
from prwarden_core.identity import PERSISTENT_NOTE, RESOLVED_PREFIX, assign_id, embed_marker, strip_markup
from prwarden_core.issues import Issue, Producer, Severity, Status

logger = logging.getLogger(__name__)

LINE_TOLERANCE = 3


def _usable_line(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _latest_by_id(history: list[HistoricalComment]) -> dict[str, HistoricalComment]:
    """Collapse repeated publications of the same id, keeping the newest.

    A still-open issue is republished on every run, so one id usually appears
    many times. Comments are returned oldest-first by GitHub; a later record
    with a timestamp replaces an earlier one.
    """
    latest: dict[str, HistoricalComment] = {}
    for record in history:
        if not record.id:
            continue
        current = latest.get(record.id)
        if current is None or (record.timestamp or "") >= (current.timestamp or ""):
            latest[record.id] = record
    return latest


def _sanitize(issue: Issue) -> Issue:
    severity = Severity.parse(issue.severity) or Severity.WARNING
    source = Producer.parse(issue.source) or Producer.AI
    if severity is issue.severity and source is issue.source:
        return issue
    return replace(issue, severity=severity, source=source)


def find_match(issue: Issue, history: list[HistoricalComment]) -> HistoricalComment | None:
    """Return the first historical record that describes ``issue``, if any."""
    if not _usable_line(issue.line):
        return None
    body = strip_markup(issue.body)
    for record in history:
        past = record.issue
        if past.path != issue.path or not _usable_line(past.line):
            continue
        if abs(past.line - issue.line) > LINE_TOLERANCE:
            continue
        if strip_markup(past.body) == body:
            return record
    return None


def reconcile(
    current: list[Issue],
    history: list[HistoricalComment],
    commit_sha: str,
) -> list[Issue]:
    """Merge current findings with history and give every issue a status.

    Current issues come first, in their input order, each re-embedded with a
    hidden marker for ``commit_sha``. Resolved issues follow, one per
    historical id, rebuilt from the historical snapshot.
    """
    history = [r for r in history or [] if isinstance(r, HistoricalComment) and r.issue is not None]
    reconciled: list[Issue] = []
    # Ids that stay open: carried by a current finding, or matched by one
    # that has since moved within the tolerance window.
    open_ids: set[str] = set()

    for issue in current or []:
        if not isinstance(issue, Issue):
            logger.warning("Skipping current finding that is not an Issue: %r", issue)
            continue
        issue = assign_id(_sanitize(issue))
        open_ids.add(issue.id)
        match = find_match(issue, history)
        if match is not None:
            open_ids.add(match.id)
            issue = replace(issue, status=Status.PERSISTENT, body=f"{issue.body}\n\n{PERSISTENT_NOTE}")
        else:
            issue = replace(issue, status=Status.NEW)
        reconciled.append(embed_marker(issue, commit_sha))

    resolved = 0
    for record in _latest_by_id(history).values():
        if record.id in open_ids:
            continue
        past = record.issue
        reconciled.append(
            replace(
                past,
                id=record.id,
                body=f"{RESOLVED_PREFIX} {strip_markup(past.body)}",
                status=Status.RESOLVED,
            )
        )
        resolved += 1

    logger.info(
        "Reconciled %d current finding(s) against %d historical record(s): %d resolved.",
        len(reconciled) - resolved,
        len(history),
        resolved,
    )
    return reconciled
