"""Unified-diff parsing and line anchoring.

GitHub only accepts an inline comment on a line that appears in the PR diff,
either as an addition or as unchanged context. Findings do not always land on
such a line: the model miscounts, an analyzer reports the start of a function
that begins above the hunk. ``map_line`` moves such a finding to the closest
line that can be commented on, and ``anchor_issue`` leaves a note in the body
so reviewers can see where it was originally reported.
"""

from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass, replace

from prwarden_core.identity import line_note
from prwarden_core.issues import DropStats, Issue

logger = logging.getLogger(__name__)

_HUNK_HEADER_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,\d+)? @@")


@dataclass(frozen=True)
class Hunk:
    header: str
    text: str
    # New-file line numbers that are additions or context, ascending.
    lines: tuple[int, ...]
    # (new-file line or None for removals, raw diff line)
    numbered: tuple[tuple[int | None, str], ...] = ()

    def annotated(self) -> str:
        """Diff lines prefixed with their new-file line number, for prompts."""
        out = []
        for number, raw in self.numbered:
            out.append(f"{number if number is not None else '-'} {raw}")
        return "\n".join(out)


def _hunk_start(header: str) -> int | None:
    match = _HUNK_HEADER_RE.match(header)
    return int(match.group(1)) if match else None


def parse_hunks(patch_text: str) -> list[Hunk]:
    """Split a file patch into hunks, tracking new-file line numbers.

    A hunk whose @@ header cannot be parsed is kept (its text still goes to the
    reviewer) but contributes no commentable lines.
    """
    hunks: list[Hunk] = []
    header: str | None = None
    body: list[str] = []
    numbered: list[tuple[int | None, str]] = []
    lines: list[int] = []
    file_line: int | None = None

    def flush():
        if header is not None:
            hunks.append(
                Hunk(
                    header=header,
                    text="\n".join([header, *body]),
                    lines=tuple(lines),
                    numbered=tuple(numbered),
                )
            )

    for line in (patch_text or "").splitlines():
        if line.startswith("@@"):
            flush()
            header, body, numbered, lines = line, [], [], []
            file_line = _hunk_start(line)
            continue
        if header is None:
            continue  # file headers (---/+++) before the first hunk
        body.append(line)
        if line.startswith("\\"):
            continue  # "\ No newline at end of file"
        if line.startswith("-"):
            numbered.append((None, line))
            continue
        if file_line is None:
            numbered.append((None, line))
            continue
        numbered.append((file_line, line))
        lines.append(file_line)
        file_line += 1
    flush()
    return hunks


def anchor_lines(patch_text: str) -> list[int]:
    """All commentable new-file lines in a patch, across every hunk."""
    return sorted({n for hunk in parse_hunks(patch_text) for n in hunk.lines})


def get_diff_positions(patch_text: str) -> dict[int, int]:
    """
    Maps new-file line numbers to their cumulative GitHub diff positions.

    GitHub's review comment API requires positions that are cumulative across
    the entire patch, not reset per hunk. The first @@ header line is NOT
    counted; position 1 is the first content line immediately below it, and
    every later @@ header occupies a position of its own. Both added and
    context lines are mapped.
    """
    positions: dict[int, int] = {}
    diff_position = 0
    file_line: int | None = None
    seen_header = False

    for line in (patch_text or "").splitlines():
        if line.startswith("@@"):
            if seen_header:
                diff_position += 1
            seen_header = True
            file_line = _hunk_start(line)
            continue
        if not seen_header:
            continue

        diff_position += 1

        if line.startswith("\\") or line.startswith("-"):
            continue
        if file_line is not None:
            positions[file_line] = diff_position
            file_line += 1

    return positions


def get_patch_line_content(patch_text: str, target_line: int) -> str:
    """Return the source content of a specific new-file line number from a patch."""
    for hunk in parse_hunks(patch_text):
        for number, raw in hunk.numbered:
            if number == target_line:
                return raw[1:] if raw and raw[0] in ("+", " ") else raw
    return ""


def map_line(reported: int, valid_lines) -> int | None:
    """Return ``reported`` if commentable, else the nearest commentable line.

    Ties go to the smaller line number. Returns None when there is nothing to
    anchor to.
    """
    candidates = sorted(set(valid_lines or ()))
    if not candidates:
        return None
    idx = bisect.bisect_left(candidates, reported)
    if idx < len(candidates) and candidates[idx] == reported:
        return reported
    below = candidates[idx - 1] if idx > 0 else None
    above = candidates[idx] if idx < len(candidates) else None
    if below is None:
        return above
    if above is None:
        return below
    return below if reported - below <= above - reported else above


def anchor_issue(issue: Issue, valid_lines, stats: DropStats | None = None) -> Issue | None:
    """Place ``issue`` on a commentable line, or drop it if there is none."""
    target = map_line(issue.line, valid_lines)
    if target is None:
        logger.debug("Dropping finding for %s:%d (no diff lines to anchor to)", issue.path, issue.line)
        if stats is not None:
            stats.unanchored += 1
        return None
    if target == issue.line:
        return issue
    logger.debug("Moving finding for %s from line %d to %d", issue.path, issue.line, target)
    return replace(issue, line=target, body=f"{issue.body}\n\n{line_note(issue.line)}")
