"""Tests for issue ids and the hidden markers that carry them."""

import pytest

from prwarden_core.identity import (
    PERSISTENT_NOTE,
    RESOLVED_PREFIX,
    MarkerError,
    assign_id,
    decode_fingerprint,
    embed_marker,
    fingerprint,
    line_note,
    parse_marker,
    parse_severity_tag,
    strip_markup,
)
from prwarden_core.issues import Issue, Producer, Severity

SHA = "c" * 40


def _issue(**kwargs):
    fields = {"path": "a.py", "line": 10, "body": "unused import", "severity": Severity.WARNING}
    fields.update(kwargs)
    return Issue(**fields)


class TestFingerprint:
    def test_is_stable(self):
        assert fingerprint("a.py", 10, "unused import") == fingerprint("a.py", 10, "unused import")

    def test_independent_of_producer(self):
        ai = assign_id(_issue(source=Producer.AI))
        lint = assign_id(_issue(source=Producer.PYLINT, rule="W0611", severity=Severity.SUGGESTION))
        assert ai.id == lint.id

    def test_round_trips(self):
        assert decode_fingerprint(fingerprint("src/x.py", 3, "Body\nwith lines")) == ("src/x.py", 3, "Body\nwith lines")

    def test_ignores_our_own_markup(self):
        marked = f"**[WARNING]**\n\nunused import\n\n{line_note(12)}\n\n{PERSISTENT_NOTE}"
        assert fingerprint("a.py", 10, marked) == fingerprint("a.py", 10, "unused import")

    def test_different_line_is_different_issue(self):
        assert fingerprint("a.py", 10, "x") != fingerprint("a.py", 11, "x")

    def test_decode_rejects_garbage(self):
        assert decode_fingerprint("not base64!") is None


class TestMarkers:
    def test_embed_then_parse(self):
        issue = embed_marker(assign_id(_issue(source=Producer.ESLINT, rule="no-unused-vars")), SHA)
        payload = parse_marker(issue.body)
        assert payload["id"] == issue.id
        assert payload["sha"] == SHA
        assert payload["severity"] == "warning"
        assert payload["source"] == "eslint"
        assert payload["rule"] == "no-unused-vars"

    def test_embed_replaces_existing_marker(self):
        issue = embed_marker(assign_id(_issue()), "a" * 40)
        issue = embed_marker(issue, SHA)
        assert issue.body.count("prwarden-issue") == 1
        assert parse_marker(issue.body)["sha"] == SHA

    def test_marker_is_removed_by_strip(self):
        issue = embed_marker(assign_id(_issue()), SHA)
        assert strip_markup(issue.body) == "unused import"

    def test_no_marker_returns_none(self):
        assert parse_marker("just a human comment") is None

    def test_bad_json_raises(self):
        with pytest.raises(MarkerError):
            parse_marker("text <!-- prwarden-issue {not json} -->")

    def test_missing_id_raises(self):
        with pytest.raises(MarkerError):
            parse_marker('text <!-- prwarden-issue {"sha": "abc"} -->')


class TestSeverityTag:
    def test_bold_tag(self):
        assert parse_severity_tag("**[CRITICAL]**\n\nSQL injection") is Severity.CRITICAL

    def test_plain_tag(self):
        assert parse_severity_tag("[SUGGESTION] rename") is Severity.SUGGESTION

    def test_no_tag(self):
        assert parse_severity_tag("looks fine") is None

    def test_resolved_prefix_is_not_a_severity(self):
        assert parse_severity_tag(f"{RESOLVED_PREFIX} unused import") is None
        assert strip_markup(f"{RESOLVED_PREFIX} unused import") == "unused import"
