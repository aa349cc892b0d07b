"""Stable issue identity and the hidden markers that carry it between runs.

There is no database: the published review comments are the only state.
Every comment we post carries a hidden HTML marker with the issue's id and
the commit it was last seen at, plus a visible ``**[SEVERITY]**`` tag. On the
next run those markers are read back to rebuild history.

The id is base64 of ``path``, ``line`` and the body with all of our own
markup removed, joined by newlines. It is deliberately reversible (anyone can
decode an id found in a comment) and deliberately exact: an edited body is a
different issue.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import replace

from prwarden_core.issues import Issue, Severity

MARKER_NAME = "prwarden-issue"

# Prefix put in front of a resolved issue's original body.
RESOLVED_PREFIX = "**[RESOLVED]**"

# Appended to a current issue that matches a previously published one.
PERSISTENT_NOTE = "_This issue was reported in a previous review and is still present._"

_ID_DELIMITER = "\n"

_MARKER_RE = re.compile(r"<!--\s*" + re.escape(MARKER_NAME) + r"\s*(.*?)\s*-->", re.DOTALL)
_SEVERITY_TAG_RE = re.compile(r"(?:\*\*)?\[(CRITICAL|WARNING|SUGGESTION)\](?:\*\*)?")
_LINE_NOTE_RE = re.compile(r"_\(Originally reported at line \d+\.\)_")


class MarkerError(ValueError):
    """A hidden marker was found but its payload could not be decoded."""


def line_note(original_line: int) -> str:
    return f"_(Originally reported at line {original_line}.)_"


def severity_tag(severity: Severity) -> str:
    return f"**[{severity.value.upper()}]**"


def strip_markup(body: str | None) -> str:
    """Remove every piece of text this tool adds to a body.

    Hidden markers, severity tags, the resolved prefix, the persistent note
    and the line-remap note all go; what remains is the finding's own text.
    """
    text = (body or "").replace("\r\n", "\n")
    text = _MARKER_RE.sub("", text)
    text = _SEVERITY_TAG_RE.sub("", text)
    text = _LINE_NOTE_RE.sub("", text)
    text = text.replace(RESOLVED_PREFIX, "").replace(PERSISTENT_NOTE, "")
    return text.strip()


def fingerprint(path: str, line: int, body: str | None) -> str:
    raw = _ID_DELIMITER.join([path or "", str(line), strip_markup(body)])
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_fingerprint(issue_id: str) -> tuple[str, int, str] | None:
    """Reverse ``fingerprint``. Returns None for anything that is not one."""
    try:
        raw = base64.b64decode(issue_id.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError, AttributeError):
        return None
    parts = raw.split(_ID_DELIMITER, 2)
    if len(parts) != 3 or not parts[1].isdigit():
        return None
    return parts[0], int(parts[1]), parts[2]


def assign_id(issue: Issue) -> Issue:
    return replace(issue, id=fingerprint(issue.path, issue.line, issue.body))


def render_marker(issue: Issue, commit_sha: str) -> str:
    payload = {"id": issue.id, "sha": commit_sha, "severity": issue.severity.value, "source": issue.source.value}
    if issue.rule:
        payload["rule"] = issue.rule
    return f"<!-- {MARKER_NAME} {json.dumps(payload, separators=(',', ':'))} -->"


def embed_marker(issue: Issue, commit_sha: str) -> Issue:
    """Return ``issue`` with a fresh hidden marker replacing any existing one."""
    body = _MARKER_RE.sub("", issue.body or "").rstrip()
    return replace(issue, body=f"{body}\n\n{render_marker(issue, commit_sha)}")


def parse_marker(body: str | None) -> dict | None:
    """Return the payload of the first hidden marker in ``body``.

    Returns None when there is no marker at all. Raises MarkerError when a
    marker is present but unusable, so callers can tell "not ours" apart from
    "ours but damaged".
    """
    match = _MARKER_RE.search(body or "")
    if match is None:
        return None
    try:
        payload = json.loads(match.group(1))
    except json.JSONDecodeError as e:
        raise MarkerError(f"marker payload is not JSON: {e}") from e
    if not isinstance(payload, dict) or not payload.get("id") or not isinstance(payload["id"], str):
        raise MarkerError("marker payload has no id")
    return payload


def parse_severity_tag(body: str | None) -> Severity | None:
    match = _SEVERITY_TAG_RE.search(body or "")
    if match is None:
        return None
    return Severity.parse(match.group(1))
