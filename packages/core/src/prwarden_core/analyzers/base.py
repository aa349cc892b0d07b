"""Base analyzer implementing the Template Method pattern.

Every static analyzer runs the same way:
    run() → _targets() → _analyze() → _command() → _exec()   (subprocess)
                                    → _parse()                ← tool-specific
          → drop findings outside the targets or on ignored rules

Subclasses declare the executable, the file extensions they handle, and
implement _command and _parse. Any failure (tool missing, timeout,
unexpected exit code, unreadable output) is logged and turns into an empty,
``failed`` result: one broken analyzer never stops the review.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from prwarden_core.issues import Producer
from prwarden_core.utils.paths import with_extensions

logger = logging.getLogger(__name__)


class AnalyzerError(RuntimeError):
    """The analyzer ran but its result cannot be used."""


@dataclass
class AnalyzerResult:
    producer: Producer
    findings: list[dict] = field(default_factory=list)
    failed: bool = False


class BaseAnalyzer(ABC):
    PRODUCER: Producer
    EXECUTABLE: str = ""
    EXTENSIONS: tuple[str, ...] = ()
    ACCEPTED_EXIT_CODES: tuple[int, ...] = (0, 1)
    TIMEOUT: int = 600

    def __init__(self, repo_path: str, config_path: str | None = None, ignore_rules=()):
        self.repo_path = str(repo_path)
        self.config_path = config_path
        self.ignore_rules = set(ignore_rules or ())

    @property
    def name(self) -> str:
        return self.PRODUCER.value

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def run(self, files: list[str]) -> AnalyzerResult:
        targets = self._targets(files)
        if not targets:
            return AnalyzerResult(self.PRODUCER)
        if shutil.which(self.EXECUTABLE) is None:
            logger.warning("%s: '%s' is not installed; skipping.", self.name, self.EXECUTABLE)
            return AnalyzerResult(self.PRODUCER, failed=True)

        try:
            findings = self._analyze(targets)
        except (AnalyzerError, OSError, subprocess.SubprocessError, ValueError) as e:
            logger.warning("%s failed: %s", self.name, e)
            return AnalyzerResult(self.PRODUCER, failed=True)

        wanted = set(targets)
        kept = [f for f in findings if f.get("path") in wanted and not self._ignored(f)]
        logger.info("%s: %d finding(s) on %d changed file(s).", self.name, len(kept), len(targets))
        return AnalyzerResult(self.PRODUCER, kept)

    # ------------------------------------------------------------------ #
    # Abstract: implement in each analyzer                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _command(self, targets: list[str]) -> list[str]:
        """Return the argv that analyzes ``targets`` (repo-relative paths)."""

    @abstractmethod
    def _parse(self, stdout: str, stderr: str) -> list[dict]:
        """Turn tool output into raw findings with repo-relative ``path``."""

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _targets(self, files: list[str]) -> list[str]:
        return with_extensions(files, self.EXTENSIONS)

    def _analyze(self, targets: list[str]) -> list[dict]:
        result = self._exec(self._command(targets))
        return self._parse(result.stdout or "", result.stderr or "")

    def _exec(self, cmd: list[str]) -> subprocess.CompletedProcess:
        logger.debug("Running %s", " ".join(cmd))
        result = subprocess.run(
            cmd,
            cwd=self.repo_path,
            capture_output=True,
            text=True,
            timeout=self.TIMEOUT,
            check=False,
        )
        if result.returncode not in self.ACCEPTED_EXIT_CODES:
            detail = (result.stderr or result.stdout or "").strip()[:300]
            raise AnalyzerError(f"{cmd[0]} exited with status {result.returncode}: {detail}")
        return result

    def _ignored(self, finding: dict) -> bool:
        # A rule may be ignored by name or, where the tool has one, by code.
        return bool({finding.get("rule"), finding.get("code")} & self.ignore_rules)

    def _relative(self, path: str) -> str:
        """Repo-relative POSIX path for whatever the tool printed."""
        if os.path.isabs(path):
            try:
                path = os.path.relpath(path, self.repo_path)
            except ValueError:
                return Path(path).as_posix()
        return Path(path).as_posix()
