from __future__ import annotations

import json

from prwarden_core.analyzers.base import AnalyzerError, BaseAnalyzer
from prwarden_core.issues import Producer
from prwarden_core.utils.paths import PY_EXTENSIONS


class PylintAnalyzer(BaseAnalyzer):
    PRODUCER = Producer.PYLINT
    EXECUTABLE = "pylint"
    EXTENSIONS = PY_EXTENSIONS
    # Pylint's exit status is a bit field of message categories found;
    # 32 means it could not run at all.
    ACCEPTED_EXIT_CODES = tuple(range(32))

    def _command(self, targets: list[str]) -> list[str]:
        cmd = ["pylint", "--output-format=json"]
        if self.config_path:
            cmd.append(f"--rcfile={self.config_path}")
        return cmd + targets

    def _parse(self, stdout: str, stderr: str) -> list[dict]:
        try:
            messages = json.loads(stdout or "[]")
        except json.JSONDecodeError as e:
            raise AnalyzerError(f"pylint did not print JSON: {e}") from e

        return [
            {
                "path": self._relative(msg.get("path", "")),
                "line": msg.get("line"),
                "message": msg.get("message", ""),
                "rule": msg.get("symbol") or msg.get("message-id"),
                "code": msg.get("message-id"),
                "severity": msg.get("type"),
            }
            for msg in messages
        ]
