"""
llm_client.py — Chat-completion client for the Perplexity API.

Perplexity exposes an OpenAI-compatible endpoint, so the `openai` SDK is
pointed at its base URL. Calls are single attempts; failures surface as
`LLMClientError`.
"""

from __future__ import annotations

from typing import Optional

from openai import OpenAI, OpenAIError

from finhub.core.config import settings
from finhub.core.logging import get_logger

logger = get_logger(__name__)


class LLMClientError(RuntimeError):
    """Raised when the chat-completion call fails or returns nothing."""


class LLMClient:
    def __init__(self, client: OpenAI) -> None:
        self._client = client

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float = 0.1,
        max_tokens: int = 4000,
    ) -> str:
        """Send one system + user exchange and return the assistant text."""
        logger.info(f"Calling {model} ({len(user_prompt)} prompt chars)")
        try:
            response = self._client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except OpenAIError as e:
            raise LLMClientError(f"LLM request failed: {e}") from e

        if not response.choices:
            raise LLMClientError("No response content from LLM")
        content = response.choices[0].message.content
        if not content:
            raise LLMClientError("No response content from LLM")
        return content


def build_llm_client(api_key: Optional[str] = None) -> Optional[LLMClient]:
    """Client for the configured Perplexity key, or None when unset."""
    api_key = api_key if api_key is not None else settings.PERPLEXITY_API_KEY
    if not api_key:
        return None
    return LLMClient(
        OpenAI(
            api_key=api_key,
            base_url=settings.PERPLEXITY_BASE_URL,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )
    )


def get_optional_llm_client() -> Optional[LLMClient]:
    """FastAPI dependency for routes that report a missing key themselves."""
    return build_llm_client()
