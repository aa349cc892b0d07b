from __future__ import annotations

try:
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]

from prwarden_core.providers.base import BaseReviewer


class OpenAIReviewer(BaseReviewer):
    MODEL = "gpt-4o"
    BASE_URL: str | None = None
    # temperature=0.2: low enough for stable JSON structure across runs,
    # which keeps finding text (and therefore issue ids) from drifting.
    TEMPERATURE = 0.2
    INSTALL_HINT = "pip install 'prwarden[openai]'"

    def __init__(self, api_key: str, model: str | None = None):
        if _OpenAI is None:
            raise ImportError(
                f"The 'openai' package is required for {self.__class__.__name__}. Install it with: {self.INSTALL_HINT}"
            )
        self.model = model or self.MODEL
        self.client = _OpenAI(api_key=api_key, base_url=self.BASE_URL)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        return (response.choices[0].message.content or "").strip()


class TogetherReviewer(OpenAIReviewer):
    """TogetherAI-hosted open models, via their OpenAI-compatible endpoint."""

    MODEL = "meta-llama/Meta-Llama-3.1-8B-Instruct-Turbo"
    BASE_URL = "https://api.together.xyz/v1"
    INSTALL_HINT = "pip install 'prwarden[together]'"
