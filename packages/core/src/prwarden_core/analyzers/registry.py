"""Tool selection and the quality-analysis entry point."""

from __future__ import annotations

import logging
from pathlib import Path

from prwarden_core.analyzers.base import AnalyzerResult, BaseAnalyzer
from prwarden_core.analyzers.dotnet import ReSharperAnalyzer, RoslynAnalyzer, StyleCopAnalyzer
from prwarden_core.analyzers.eslint import EslintAnalyzer
from prwarden_core.analyzers.pylint import PylintAnalyzer
from prwarden_core.utils.paths import is_excluded

logger = logging.getLogger(__name__)

ANALYZERS: dict[str, type[BaseAnalyzer]] = {
    "eslint": EslintAnalyzer,
    "pylint": PylintAnalyzer,
    "roslyn": RoslynAnalyzer,
    "stylecop": StyleCopAnalyzer,
    "resharper": ReSharperAnalyzer,
}

_ESLINT_CONFIGS = (
    ".eslintrc",
    ".eslintrc.js",
    ".eslintrc.cjs",
    ".eslintrc.json",
    ".eslintrc.yml",
    ".eslintrc.yaml",
    "eslint.config.js",
    "eslint.config.mjs",
    "eslint.config.cjs",
)


def detect_tools(repo_path: str) -> list[str]:
    """Pick analyzers from what is at the repository root."""
    root = Path(repo_path)
    tools = []
    if (root / "package.json").exists() and any((root / name).exists() for name in _ESLINT_CONFIGS):
        tools.append("eslint")
    if any(root.glob("*.py")) or (root / "pyproject.toml").exists() or (root / "setup.py").exists():
        tools.append("pylint")
    if any(root.glob("*.sln")) or any(root.glob("*.csproj")):
        tools.append("roslyn")
    return tools


def run_quality_tools(config: dict, repo_path: str, changed_files: list[str]) -> list[AnalyzerResult]:
    """Run every configured analyzer over the changed files.

    Unknown tool names are logged and skipped. Analyzer failures come back as
    ``failed`` results; this function does not raise for them.
    """
    tools = [t.strip().lower() for t in config.get("quality_tools") or [] if t and t.strip()]
    if tools == ["auto"]:
        tools = detect_tools(repo_path)
        logger.info("Auto-detected quality tools: %s", ", ".join(tools) or "none")

    files = [f for f in changed_files if not is_excluded(f, config.get("ignore_files") or [])]
    config_paths = config.get("quality_config_paths") or {}
    ignore_rules = config.get("ignore_rules") or {}

    results = []
    for tool in tools:
        analyzer_cls = ANALYZERS.get(tool)
        if analyzer_cls is None:
            logger.warning("Unknown quality tool: %s", tool)
            continue
        analyzer = analyzer_cls(repo_path, config_path=config_paths.get(tool), ignore_rules=ignore_rules.get(tool))
        results.append(analyzer.run(files))
    return results
