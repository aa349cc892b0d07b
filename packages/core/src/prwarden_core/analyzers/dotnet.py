"""Analyzers for C# projects.

Roslyn and StyleCop both report through ``dotnet build`` diagnostics and only
differ in which rule ids they claim (StyleCop owns ``SA*``). ReSharper's
``jb inspectcode`` writes an XML report instead.

None of these install packages or write config files into the repository:
the project is expected to reference the analyzers it wants. When a build
reports nothing for an analyzer, the packages and the ``.editorconfig`` it
relies on are logged so the setup can be checked.
"""

from __future__ import annotations

import logging
import re
import tempfile
import xml.etree.ElementTree as ET
from abc import abstractmethod
from pathlib import Path

from prwarden_core.analyzers.base import AnalyzerError, BaseAnalyzer
from prwarden_core.issues import Producer
from prwarden_core.utils.paths import CS_EXTENSIONS

logger = logging.getLogger(__name__)

# /src/App/Foo.cs(12,9): warning CA1822: Mark members as static [/src/App/App.csproj]
_DIAGNOSTIC_RE = re.compile(
    r"^\s*(?:\d+>)?(?P<path>[^\s(][^(]*?)\((?P<line>\d+),\d+(?:,\d+,\d+)?\):\s+"
    r"(?P<level>warning|error)\s+(?P<rule>[A-Za-z]+\d+):\s+(?P<message>.*?)(?:\s+\[[^\]]*\])?\s*$",
    re.MULTILINE,
)


class _DotnetBuildAnalyzer(BaseAnalyzer):
    EXECUTABLE = "dotnet"
    EXTENSIONS = CS_EXTENSIONS
    PACKAGES: tuple[str, ...] = ()

    @abstractmethod
    def _owns(self, rule: str) -> bool:
        """Whether diagnostics with this rule id belong to this analyzer."""

    def _command(self, targets: list[str]) -> list[str]:
        # ``config_path`` names the project or solution to build; without it
        # dotnet picks the one in the repository root.
        cmd = ["dotnet", "build"]
        if self.config_path:
            cmd.append(self.config_path)
        return cmd + [
            "-nologo",
            "/p:GenerateFullPaths=true",
            "/p:AnalysisLevel=latest",
            "/p:EnforceCodeStyleInBuild=true",
            "/p:RunAnalyzersDuringBuild=true",
            "/p:TreatWarningsAsErrors=false",
        ]

    def _parse(self, stdout: str, stderr: str) -> list[dict]:
        seen = set()
        findings = []
        for match in _DIAGNOSTIC_RE.finditer(f"{stdout}\n{stderr}"):
            rule = match.group("rule")
            if not self._owns(rule):
                continue
            finding = {
                "path": self._relative(match.group("path").strip()),
                "line": int(match.group("line")),
                "message": match.group("message").strip(),
                "rule": rule,
                "severity": match.group("level"),
            }
            # MSBuild repeats every diagnostic in its closing summary.
            key = (finding["path"], finding["line"], rule, finding["message"])
            if key in seen:
                continue
            seen.add(key)
            findings.append(finding)
        return findings

    def _analyze(self, targets: list[str]) -> list[dict]:
        findings = super()._analyze(targets)
        if not findings:
            self._log_setup_hint()
        return findings

    def _log_setup_hint(self) -> None:
        missing = "" if (Path(self.repo_path) / ".editorconfig").exists() else " and an .editorconfig"
        logger.info(
            "%s: build reported no diagnostics. Analysis needs the project to reference %s%s.",
            self.name,
            ", ".join(self.PACKAGES),
            missing,
        )


class RoslynAnalyzer(_DotnetBuildAnalyzer):
    PRODUCER = Producer.ROSLYN
    PACKAGES = (
        "Microsoft.CodeAnalysis.NetAnalyzers",
        "Microsoft.CodeAnalysis.CSharp.CodeStyle",
        "Roslynator.Analyzers",
        "SecurityCodeScan.VS2019",
    )

    def _owns(self, rule: str) -> bool:
        return not rule.upper().startswith("SA")


class StyleCopAnalyzer(_DotnetBuildAnalyzer):
    PRODUCER = Producer.STYLECOP
    PACKAGES = ("StyleCop.Analyzers",)

    def _owns(self, rule: str) -> bool:
        return rule.upper().startswith("SA")


class ReSharperAnalyzer(BaseAnalyzer):
    PRODUCER = Producer.RESHARPER
    EXECUTABLE = "jb"
    EXTENSIONS = CS_EXTENSIONS
    ACCEPTED_EXIT_CODES = (0,)

    _report_path: str = ""

    def _solution(self) -> str:
        solutions = sorted(Path(self.repo_path).glob("*.sln"))
        if not solutions:
            raise AnalyzerError("no .sln file found in the repository root")
        return str(solutions[0])

    def _command(self, targets: list[str]) -> list[str]:
        cmd = [
            "jb",
            "inspectcode",
            self._solution(),
            f"--output={self._report_path}",
            "--format=Xml",
            "--verbosity=WARN",
            "--absolute-paths",
        ]
        if self.config_path:
            cmd.append(f"--settings={self.config_path}")
        return cmd

    def _analyze(self, targets: list[str]) -> list[dict]:
        with tempfile.TemporaryDirectory(prefix="prwarden-inspectcode-") as tmp:
            self._report_path = str(Path(tmp) / "inspection.xml")
            self._exec(self._command(targets))
            report = Path(self._report_path)
            if not report.exists():
                raise AnalyzerError("inspectcode produced no report")
            return self._parse(report.read_text(encoding="utf-8"), "")

    def _parse(self, stdout: str, stderr: str) -> list[dict]:
        try:
            root = ET.fromstring(stdout)
        except ET.ParseError as e:
            raise AnalyzerError(f"inspectcode report is not valid XML: {e}") from e

        # Severity normally lives on the IssueType; an Issue may override it.
        type_severity = {t.get("Id"): t.get("Severity") for t in root.iter("IssueType")}
        findings = []
        for issue in root.iter("Issue"):
            type_id = issue.get("TypeId")
            findings.append(
                {
                    "path": self._relative(issue.get("File", "").replace("\\", "/")),
                    "line": issue.get("Line"),
                    "message": issue.get("Message", ""),
                    "rule": type_id,
                    "severity": issue.get("Severity") or type_severity.get(type_id),
                }
            )
        return findings
