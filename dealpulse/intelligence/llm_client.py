"""Async wrapper around the OpenAI chat completions API."""

from __future__ import annotations

import asyncio
from typing import Optional

import openai
import structlog
from openai import AsyncOpenAI

from dealpulse.core.config import GenerationConfig
from dealpulse.core.exceptions import (
    GenerationTimeoutError,
    GenerationTransportError,
    MissingCredentialError,
)
from dealpulse.utils.reliability import with_retry

logger = structlog.get_logger(__name__)

JSON_SYSTEM_PROMPT = (
    "You are an expert B2B sales strategist. Respond with a single valid JSON object "
    "and no other text."
)


class LLMClient:
    """Send one prompt, get one text completion, within a bounded timeout.

    Transport failures are retried; timeouts are not, so a slow service costs
    at most one timeout per attempt at the caller.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o",
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        max_attempts: int = 2,
        retry_wait: float = 0.5,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self._client = client
        self._complete_with_retry = with_retry(
            max_attempts=max_attempts,
            backoff_min=retry_wait,
            backoff_max=retry_wait * 16,
            retry_exceptions=(GenerationTransportError,),
        )(self._complete_once)

    @classmethod
    def from_settings(cls, config: GenerationConfig) -> "LLMClient":
        return cls(
            api_key=config.openai_api_key,
            model=config.openai_model,
            base_url=config.openai_base_url,
            timeout=config.timeout_seconds,
            max_attempts=config.max_attempts,
        )

    @property
    def available(self) -> bool:
        return self._client is not None or bool(self.api_key)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.api_key:
                raise MissingCredentialError("OPENAI_API_KEY is not configured")
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url, max_retries=0)
        return self._client

    async def complete(
        self,
        prompt: str,
        max_tokens: int = 800,
        temperature: float = 0.7,
        system_prompt: str = JSON_SYSTEM_PROMPT,
    ) -> str:
        """Return the completion text for ``prompt``."""
        client = self._get_client()
        return await self._complete_with_retry(
            client, prompt, max_tokens, temperature, system_prompt
        )

    async def _complete_once(
        self,
        client: AsyncOpenAI,
        prompt: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str,
    ) -> str:
        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": prompt},
                    ],
                    max_tokens=max_tokens,
                    temperature=temperature,
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, openai.APITimeoutError) as exc:
            raise GenerationTimeoutError(
                f"Generation timed out after {self.timeout}s", details={"model": self.model}
            ) from exc
        except openai.OpenAIError as exc:
            raise GenerationTransportError(
                f"Generation request failed: {exc}", details={"model": self.model}
            ) from exc

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise GenerationTransportError("Empty response payload from generative service")

        logger.debug("completion_received", model=self.model, chars=len(content))
        return content
