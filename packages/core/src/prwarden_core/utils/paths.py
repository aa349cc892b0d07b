"""Which changed files get reviewed, and by what."""

from __future__ import annotations

import fnmatch

# Binary and generated artifacts: no model or linter has anything useful to
# say about them.
NON_CODE_EXTENSIONS = {
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".ico",
    ".webp",
    ".pdf",
    ".woff",
    ".woff2",
    ".ttf",
    ".mp4",
    ".zip",
    ".tar",
    ".gz",
    ".lock",  # e.g. package-lock.json, Pipfile.lock
}

JS_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs")
PY_EXTENSIONS = (".py",)
CS_EXTENSIONS = (".cs",)


def is_code_file(file_name: str) -> bool:
    return not any(file_name.lower().endswith(ext) for ext in NON_CODE_EXTENSIONS)


def is_excluded(filename: str, patterns: list[str]) -> bool:
    """Return True if filename matches any exclude pattern.

    Supports:
    - fnmatch globs on the full path: "src/generated/*.py"
    - fnmatch globs on the basename: "*.md", "*.min.js"
    - Directory names/prefixes: "migrations/", "tests" (matches any file within that tree)
    """
    for pattern in patterns or []:
        if not pattern:
            continue
        if fnmatch.fnmatch(filename, pattern):
            return True
        if fnmatch.fnmatch(filename.rsplit("/", 1)[-1], pattern):
            return True
        prefix = pattern.rstrip("/") + "/"
        if filename.startswith(prefix) or ("/" + prefix) in filename:
            return True
    return False


def with_extensions(files: list[str], extensions: tuple[str, ...]) -> list[str]:
    return [f for f in files if f.lower().endswith(extensions)]
