"""Language-model collaborator over an OpenAI-compatible chat API (OpenRouter by default)."""

from __future__ import annotations

import logging

import openai

import game_config as config
from errors import ModelCallError, ModelUnavailableError

log = logging.getLogger(__name__)


class ModelClient:
    """Turns a prompt into a completion string.

    Offers no timeout of its own; callers are responsible for bounding the
    wait.  The underlying ``AsyncOpenAI`` client is created on first use so the
    service can boot without credentials and simply fall back on every update.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
    ) -> None:
        self.api_key = config.OPENROUTER_API_KEY if api_key is None else api_key
        self.base_url = base_url or config.OPENROUTER_BASE_URL
        self.model = model or config.OPENROUTER_MODEL
        self._client: openai.AsyncOpenAI | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> openai.AsyncOpenAI:
        if not self.api_key:
            raise ModelUnavailableError("OPENROUTER_API_KEY is not configured")
        if self._client is None:
            self._client = openai.AsyncOpenAI(base_url=self.base_url, api_key=self.api_key)
        return self._client

    async def complete(self, prompt: str) -> str:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.OpenAIError as exc:
            raise ModelCallError(f"LLM API call failed: {exc}") from exc
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
