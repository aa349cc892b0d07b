from __future__ import annotations

import json
import os
import re

from github import Github

from prwarden_core.config import ConfigError

SHA_MARKER = "<!-- prwarden-sha: {sha} -->"
_SHA_MARKER_RE = re.compile(r"<!-- prwarden-sha: ([0-9a-f]{40}) -->")


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


def get_diff(pr):
    return pr.get_files()


def get_review_comments(pr) -> list:
    """All inline review comments on the PR, oldest first."""
    return list(pr.get_review_comments())


def get_last_reviewed_sha(pr) -> str | None:
    """Return the most recent HEAD SHA stored by prwarden in a review body, or None."""
    last_sha = None
    for review in pr.get_reviews():
        match = _SHA_MARKER_RE.search(review.body or "")
        if match:
            last_sha = match.group(1)
    return last_sha


def get_incremental_files(repo, base_sha: str, head_sha: str):
    """Return files changed between two commits using GitHub's compare API."""
    comparison = repo.compare(base_sha, head_sha)
    return comparison.files


def read_event(path: str | None = None) -> dict:
    """Load the webhook payload the Actions runner wrote to GITHUB_EVENT_PATH."""
    path = path or os.environ.get("GITHUB_EVENT_PATH")
    if not path:
        raise ConfigError("GITHUB_EVENT_PATH is not set; are we running inside GitHub Actions?")
    try:
        with open(path, encoding="utf-8") as f:
            event = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read event payload {path}: {e}") from e
    if not isinstance(event, dict):
        raise ConfigError(f"Event payload {path} is not a JSON object.")
    return event


def pr_from_event(event: dict) -> dict:
    """Pull the fields a review needs out of a ``pull_request`` event."""
    pr = event.get("pull_request") or {}
    number = event.get("number") or pr.get("number")
    repo = (event.get("repository") or {}).get("full_name") or os.environ.get("GITHUB_REPOSITORY")
    if not number or not repo:
        raise ConfigError("Event payload does not describe a pull request.")
    return {
        "repo": repo,
        "number": int(number),
        "action": event.get("action"),
        "before": event.get("before"),
        "after": event.get("after") or (pr.get("head") or {}).get("sha"),
    }
