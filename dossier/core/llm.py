"""Anthropic client wrapper: blocking calls with retry, token streaming, JSON parsing."""

import asyncio
import json
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from dossier.core.config import get_settings
from dossier.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.7
DEFAULT_RETRIES = 1


class LLMError(Exception):
    """Raised when an LLM call cannot produce a usable response."""


class LLMResponseError(LLMError):
    """Raised when the model answers with an unexpected content block."""


@dataclass
class LLMResult:
    content: str
    token_count: int


class LLMClient:
    """
    Thin wrapper around ``AsyncAnthropic``.

    Retries are handled here (the SDK's own retries are disabled) so that the
    attempt count and backoff are explicit: ``retries + 1`` attempts, waiting
    ``2 ** attempt`` seconds between them.
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_MODEL,
        base_url: str | None = None,
        timeout: float = 60.0,
        stream_timeout: float = 120.0,
        client: Any = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.stream_timeout = stream_timeout
        self._client = client

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        if not self.api_key or not self.api_key.strip():
            raise LLMError("ANTHROPIC_API_KEY is not set")

        from anthropic import AsyncAnthropic

        kwargs: dict[str, Any] = {
            "api_key": self.api_key,
            "max_retries": 0,
            "timeout": self.timeout,
        }
        # Local proxies are ignored, only remote gateways are honoured
        if self.base_url and "localhost" not in self.base_url and "127.0.0.1" not in self.base_url:
            kwargs["base_url"] = self.base_url

        self._client = AsyncAnthropic(**kwargs)
        return self._client

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        retries: int = DEFAULT_RETRIES,
    ) -> LLMResult:
        """
        Run a single system+user completion.

        Args:
            system_prompt: System instructions
            user_prompt: User message
            model: Model override
            max_tokens: Output token limit
            temperature: Sampling temperature
            retries: Extra attempts after the first failure

        Returns:
            LLMResult with text content and input+output token count

        Raises:
            LLMResponseError: If the first content block is not text (not retried)
            LLMError: If every attempt raised
        """
        client = self._get_client()
        last_error: Exception | None = None

        for attempt in range(retries + 1):
            try:
                message = await client.messages.create(
                    model=model or self.model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    system=system_prompt,
                    messages=[{"role": "user", "content": user_prompt}],
                )
            except Exception as e:
                last_error = e
                logger.warning(f"LLM call failed (attempt {attempt + 1}/{retries + 1}): {e}")
                if attempt < retries:
                    await asyncio.sleep(2**attempt)
                continue

            block = message.content[0] if message.content else None
            if block is None or getattr(block, "type", None) != "text":
                raise LLMResponseError("Unexpected response type from model")

            return LLMResult(
                content=block.text,
                token_count=message.usage.input_tokens + message.usage.output_tokens,
            )

        raise LLMError(f"LLM call failed after {retries + 1} attempts: {last_error}")

    async def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> AsyncIterator[str]:
        """Yield text deltas as the model produces them."""
        client = self._get_client()

        try:
            async with client.messages.stream(
                model=model or self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                timeout=self.stream_timeout,
            ) as stream:
                async for text in stream.text_stream:
                    yield text
        except Exception as e:
            logger.error(f"LLM stream failed: {e}")
            raise LLMError(f"Stream failed: {e}") from e


@lru_cache(maxsize=1)
def get_llm_client() -> LLMClient:
    """Get the process-wide LLM client built from settings."""
    settings = get_settings()
    return LLMClient(
        api_key=settings.ANTHROPIC_API_KEY,
        model=settings.LLM_MODEL,
        base_url=settings.ANTHROPIC_BASE_URL,
        timeout=settings.LLM_TIMEOUT_SECONDS,
        stream_timeout=settings.LLM_STREAM_TIMEOUT_SECONDS,
    )


# =============================================================================
# Output parsing
# =============================================================================


def strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()

    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_llm_json(raw_output: str) -> Any:
    """
    Parse LLM output as JSON after removing code fences.

    Raises:
        json.JSONDecodeError: If the cleaned text is not valid JSON
    """
    return json.loads(strip_llm_fences(raw_output))


def extract_json_object(raw_output: str) -> dict[str, Any]:
    """Parse the outermost ``{...}`` span found in prose-wrapped output."""
    match = re.search(r"\{.*\}", raw_output, re.DOTALL)
    if not match:
        raise ValueError("No JSON found in response")
    return json.loads(match.group(0))
