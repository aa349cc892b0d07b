"""Base reviewer implementing the Template Method pattern.

All providers share the same review algorithm:
    review() → _build_system_prompt() + _build_user_prompt()
             → _call_with_retry() → _call_api()   ← only this differs per provider
             → _parse()

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response

One call reviews one diff hunk. A hunk whose call fails after every retry
contributes no findings; ``failed_calls`` counts how often that happened so
the run summary can report it.
"""

from __future__ import annotations

import json
import logging
import re
import time
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

# Shared defaults; subclasses may override as class attributes if needed.
_MAX_RETRIES = 3
_MAX_TOKENS = 1024


class BaseReviewer(ABC):
    MODEL: str = ""
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS

    failed_calls: int = 0

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def review(
        self,
        title: str,
        description: str,
        file_name: str,
        hunk: str,
        file_content: str,
        guidelines: str = "",
    ) -> list[dict]:
        """Review one hunk and return raw findings.

        Each finding is a dict with ``lineNumber``, ``reviewComment`` and an
        optional ``severity``, exactly as the model produced it. Normalizing
        them is the caller's job.
        """
        system = self._build_system_prompt(guidelines)
        user = self._build_user_prompt(title, description, file_name, hunk, file_content)
        raw = self._call_with_retry(system, user)
        if raw is None:
            self.failed_calls += 1
            return []
        return self._parse(raw)

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        It should raise on failure; _call_with_retry handles retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> str | None:
        """Retry _call_api up to MAX_RETRIES times with exponential backoff."""
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._call_api(system_prompt, user_prompt)
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    return None
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)

    def _build_system_prompt(self, guidelines: str) -> str:
        extra = f"\n\nAdditional project guidelines:\n{guidelines}" if guidelines else ""
        return f"""Your task is to review pull requests. Instructions:
- Provide the response in following JSON format: {{"reviews": [{{"lineNumber": <line_number>, "reviewComment": "<review comment>", "severity": "<severity>"}}]}}
- Severity levels:
  - "critical": For issues that must be fixed (security issues, bugs, broken functionality)
  - "warning": For code quality issues that should be addressed
  - "suggestion": For optional improvements
- Do not give positive comments or compliments.
- Provide comments and suggestions ONLY if there is something to improve, otherwise "reviews" should be an empty array.
- Write the comment in GitHub Markdown format.
- Use the given description only for the overall context and only comment the code.
- Consider the full file context when making suggestions.
- IMPORTANT: NEVER suggest adding comments to the code.{extra}"""  # noqa: E501

    def _build_user_prompt(
        self,
        title: str,
        description: str,
        file_name: str,
        hunk: str,
        file_content: str,
    ) -> str:
        """Build the per-hunk prompt.

        Every diff line in ``hunk`` is already prefixed with its new-file line
        number, which is what ``lineNumber`` must refer to.
        """
        extension = file_name.rsplit(".", 1)[-1] if "." in file_name else ""
        context = f"\nFull file content for context:\n```{extension}\n{file_content}\n```\n" if file_content else ""
        return f"""Review the following code diff in the file "{file_name}" and take the pull request title and description into account when writing the response.

Pull request title: {title}
Pull request description:

---
{description}
---
{context}
Git diff to review:

```diff
{hunk}
```
"""  # noqa: E501

    def _parse(self, raw: str) -> list[dict]:
        """Parse the model's raw text response into a list of finding dicts.

        Accepts the requested ``{"reviews": [...]}`` object as well as a bare
        JSON list, with or without an outer ```json fence.
        """
        try:
            # Strip only the outer ```json ... ``` fence that the model wraps
            # the response in, NOT backticks inside comment string values.
            cleaned = re.sub(r"^```(?:json)?\s*", "", (raw or "").strip())
            cleaned = re.sub(r"\s*```$", "", cleaned.strip())
            data = json.loads(cleaned or "{}")
        except json.JSONDecodeError:
            logger.warning(
                "%s: failed to parse response as JSON: %s",
                self.__class__.__name__,
                (raw or "")[:200],
            )
            return []
        if isinstance(data, dict):
            data = data.get("reviews", [])
        if not isinstance(data, list):
            return []
        return [item for item in data if isinstance(item, dict)]
