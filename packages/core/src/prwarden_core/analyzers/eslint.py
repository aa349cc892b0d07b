from __future__ import annotations

import json

from prwarden_core.analyzers.base import AnalyzerError, BaseAnalyzer
from prwarden_core.issues import Producer
from prwarden_core.utils.paths import JS_EXTENSIONS


class EslintAnalyzer(BaseAnalyzer):
    PRODUCER = Producer.ESLINT
    # The project's own eslint install, never a fresh download.
    EXECUTABLE = "npx"
    EXTENSIONS = JS_EXTENSIONS

    def _command(self, targets: list[str]) -> list[str]:
        cmd = ["npx", "--no-install", "eslint", "--format", "json"]
        if self.config_path:
            cmd += ["--config", self.config_path]
        return cmd + targets

    def _parse(self, stdout: str, stderr: str) -> list[dict]:
        try:
            results = json.loads(stdout or "[]")
        except json.JSONDecodeError as e:
            raise AnalyzerError(f"eslint did not print JSON: {e}") from e

        findings = []
        for result in results:
            path = self._relative(result.get("filePath", ""))
            for msg in result.get("messages", []):
                findings.append(
                    {
                        "path": path,
                        "line": msg.get("line"),
                        "message": msg.get("message", ""),
                        # Parse errors have no ruleId.
                        "rule": msg.get("ruleId") or "eslint",
                        "severity": msg.get("severity"),
                    }
                )
        return findings
