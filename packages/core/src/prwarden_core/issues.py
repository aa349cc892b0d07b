"""Canonical issue model shared by every finding producer.

The generative reviewer and each static analyzer speak their own dialect:
different field names, different severity vocabularies, sometimes no line at
all. Everything downstream (line mapping, identity, reconciliation, policy)
works on a single ``Issue`` shape, so normalization happens once, here.

Severity is always one of three tiers. Producers with finer-grained levels
are folded down through a fixed per-producer table; anything the table does
not know about becomes ``warning``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    SUGGESTION = "suggestion"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value) -> Severity | None:
        """Return the tier named by ``value`` (case-insensitive), or None."""
        if isinstance(value, Severity):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


_SEVERITY_RANK = {Severity.CRITICAL: 2, Severity.WARNING: 1, Severity.SUGGESTION: 0}

# Most severe first. PolicyGate walks tiers in this order.
SEVERITY_ORDER = (Severity.CRITICAL, Severity.WARNING, Severity.SUGGESTION)


class Status(str, Enum):
    NEW = "new"
    PERSISTENT = "persistent"
    RESOLVED = "resolved"


class Producer(str, Enum):
    """Where a finding came from.

    Each member carries its own severity vocabulary (see ``severity_table``),
    so "behaves like analyzer X" is a lookup rather than a separate pipeline.
    """

    AI = "ai"
    ESLINT = "eslint"
    PYLINT = "pylint"
    ROSLYN = "roslyn"
    STYLECOP = "stylecop"
    RESHARPER = "resharper"

    @property
    def is_analyzer(self) -> bool:
        return self is not Producer.AI

    @property
    def severity_table(self) -> dict[str, Severity]:
        return _SEVERITY_TABLES[self]

    @classmethod
    def parse(cls, value) -> Producer | None:
        if isinstance(value, Producer):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


_C, _W, _S = Severity.CRITICAL, Severity.WARNING, Severity.SUGGESTION

_DOTNET_LEVELS = {"error": _C, "warning": _W, "info": _S, "hidden": _S}

_SEVERITY_TABLES: dict[Producer, dict[str, Severity]] = {
    # Models are asked for the three tiers but regularly answer in other
    # common review vocabularies.
    Producer.AI: {
        "critical": _C,
        "blocker": _C,
        "error": _C,
        "high": _C,
        "warning": _W,
        "major": _W,
        "medium": _W,
        "suggestion": _S,
        "minor": _S,
        "low": _S,
        "nitpick": _S,
        "info": _S,
    },
    # ESLint: 2 = error, 1 = warn, 0 = off.
    Producer.ESLINT: {"2": _C, "error": _C, "1": _W, "warn": _W, "warning": _W, "0": _S, "off": _S},
    Producer.PYLINT: {
        "fatal": _C,
        "error": _C,
        "warning": _W,
        "convention": _S,
        "refactor": _S,
        "info": _S,
    },
    Producer.ROSLYN: _DOTNET_LEVELS,
    Producer.STYLECOP: _DOTNET_LEVELS,
    Producer.RESHARPER: {
        "error": _C,
        "warning": _W,
        "suggestion": _S,
        "hint": _S,
        "do_not_show": _S,
    },
}


def map_severity(producer: Producer, raw) -> Severity:
    """Fold a producer-specific severity onto the three-tier scale."""
    if raw is None or isinstance(raw, bool):
        return Severity.WARNING
    key = str(raw).strip().lower()
    return producer.severity_table.get(key, Severity.WARNING)


@dataclass(frozen=True)
class Issue:
    """A single producer-agnostic finding.

    Instances are immutable; every stage returns a new value via
    ``dataclasses.replace``. ``id`` is filled in by the identity engine and
    ``status`` by the reconciler.
    """

    path: str
    line: int
    body: str
    severity: Severity
    source: Producer = Producer.AI
    rule: str | None = None
    id: str | None = None
    status: Status | None = None


@dataclass
class DropStats:
    """Counters for findings and records the pipeline tolerated and dropped."""

    discarded: int = 0  # no location or no text
    unanchored: int = 0  # no diff line to attach to
    malformed_history: int = 0
    producer_failures: int = 0

    @property
    def total(self) -> int:
        return self.discarded + self.unanchored + self.malformed_history + self.producer_failures


# Field aliases used by the different producers, in lookup order.
_PATH_KEYS = ("path", "file", "file_path", "filePath")
_LINE_KEYS = ("line", "lineNumber", "line_number")
_FALLBACK_LINE_KEYS = ("end_line", "endLine")
_BODY_KEYS = ("body", "message", "comment", "reviewComment")
_RULE_KEYS = ("rule", "ruleId", "rule_id", "symbol")


def _first(raw: dict, keys: tuple[str, ...]):
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _coerce_line(value) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        line = int(str(value).strip())
    except ValueError:
        return None
    return line if line > 0 else None


def normalize_finding(
    raw: dict,
    producer: Producer,
    default_path: str | None = None,
    stats: DropStats | None = None,
) -> Issue | None:
    """Convert one raw finding into an ``Issue``, or None if it cannot be located.

    A finding without a usable line keeps line 1 (the line mapper moves it to
    the nearest diff line later). A finding without any path, or without any
    text, is discarded and counted.
    """
    if not isinstance(raw, dict):
        logger.debug("Discarding non-dict %s finding: %r", producer.value, raw)
        if stats is not None:
            stats.discarded += 1
        return None

    path = _first(raw, _PATH_KEYS) or default_path
    text = _first(raw, _BODY_KEYS)
    if not path or text is None or not str(text).strip():
        logger.debug("Discarding %s finding without location or text: %r", producer.value, raw)
        if stats is not None:
            stats.discarded += 1
        return None

    line = _coerce_line(_first(raw, _LINE_KEYS)) or _coerce_line(_first(raw, _FALLBACK_LINE_KEYS)) or 1

    rule = None
    if producer.is_analyzer:
        rule_value = _first(raw, _RULE_KEYS)
        rule = str(rule_value) if rule_value is not None else None

    path = str(path)
    if path.startswith("./"):
        path = path[2:]

    return Issue(
        path=path,
        line=line,
        body=str(text).strip(),
        severity=map_severity(producer, raw.get("severity")),
        source=producer,
        rule=rule,
    )


def normalize_findings(
    raws: Iterable,
    producer: Producer,
    default_path: str | None = None,
    stats: DropStats | None = None,
) -> list[Issue]:
    issues = []
    for raw in raws or []:
        issue = normalize_finding(raw, producer, default_path, stats)
        if issue is not None:
            issues.append(issue)
    return issues
