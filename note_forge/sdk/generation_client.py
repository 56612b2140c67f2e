"""
Generation service client.

Wraps an OpenAI-compatible chat completions endpoint with a bounded retry
loop. The client has no billing side effects: it either returns text or
raises GenerationFailed.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from ..config.loader import GenerationSettings
from ..core.errors import GenerationFailed

logger = logging.getLogger(__name__)

# Overloaded / temporarily unavailable upstream responses
TRANSIENT_STATUS_CODES = frozenset({502, 503, 504, 529})


@dataclass(frozen=True)
class GenerationResult:
    """Raw text returned by the generation service."""
    text: str
    attempts: int
    model: str


def is_transient_status(status: Optional[int]) -> bool:
    """Whether an upstream status is worth another attempt."""
    return status in TRANSIENT_STATUS_CODES


class GenerationClient:
    """Generation client with bounded retries.

    Up to ``max_attempts`` calls are made. Only transient statuses and
    transport failures are retried, with a fixed ``retry_delay`` between
    attempts; any other failure aborts immediately.
    """

    def __init__(
        self,
        model: str,
        client: Optional[AsyncOpenAI] = None,
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        single_page_max_tokens: int = 8192,
        multi_page_max_tokens: int = 32768,
        temperature: Optional[float] = 0.7,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """Initialize the generation client.

        Args:
            model: Model name (required)
            client: Configured AsyncOpenAI instance (defaults to one from env)
            max_attempts: Total attempts including the first call
            retry_delay: Seconds to wait between attempts
            single_page_max_tokens: Output cap for one-page requests
            multi_page_max_tokens: Output cap for multi-page requests
            temperature: Sampling temperature
            sleep: Awaitable used for the inter-attempt delay

        Raises:
            ValueError: If model is missing/empty or max_attempts < 1
        """
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        self.model = model
        self.client = client or AsyncOpenAI(max_retries=0)
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.single_page_max_tokens = single_page_max_tokens
        self.multi_page_max_tokens = multi_page_max_tokens
        self.temperature = temperature
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: GenerationSettings) -> "GenerationClient":
        """Build a client for the configured endpoint.

        The SDK's own retries are disabled so the retry budget lives here.

        Raises:
            ValueError: If the API key environment variable is not set
        """
        api_key = os.environ.get(settings.api_key_env)
        if not api_key:
            raise ValueError(f"{settings.api_key_env} is not set")

        client = AsyncOpenAI(
            api_key=api_key,
            base_url=settings.base_url,
            timeout=settings.request_timeout_seconds,
            max_retries=0
        )
        return cls(
            model=settings.model,
            client=client,
            max_attempts=settings.max_attempts,
            retry_delay=settings.retry_delay_seconds,
            single_page_max_tokens=settings.single_page_max_tokens,
            multi_page_max_tokens=settings.multi_page_max_tokens,
            temperature=settings.temperature
        )

    def max_tokens_for(self, page_count: int) -> int:
        """Output size cap; multi-page requests get the larger allowance."""
        if page_count > 1:
            return self.multi_page_max_tokens
        return self.single_page_max_tokens

    async def generate(self, prompt: str, page_count: int = 1) -> GenerationResult:
        """Generate document text for a prompt.

        Args:
            prompt: Prompt text (required)
            page_count: Pages requested, used to size the output budget

        Returns:
            GenerationResult with the raw text and the number of attempts made

        Raises:
            ValueError: If prompt is empty
            GenerationFailed: After the retry budget is exhausted, or at once
                on a non-transient failure
        """
        if not prompt:
            raise ValueError("prompt is required and cannot be empty")

        max_tokens = self.max_tokens_for(page_count)
        last_status: Optional[int] = None
        last_message = "generation service unavailable"

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=self.temperature,
                    max_tokens=max_tokens
                )
            except APIStatusError as e:
                last_status = e.status_code
                last_message = f"generation service error: {e.status_code}"
                if not is_transient_status(e.status_code):
                    logger.error(
                        "Generation failed with non-transient status %s on attempt %s",
                        e.status_code, attempt,
                    )
                    raise GenerationFailed(last_message, status=e.status_code, attempts=attempt) from e
                logger.warning(
                    "Generation attempt %s/%s got transient status %s",
                    attempt, self.max_attempts, e.status_code,
                )
            except APIConnectionError as e:
                last_status = None
                last_message = f"generation service unreachable: {e}"
                logger.warning(
                    "Generation attempt %s/%s failed to connect: %s",
                    attempt, self.max_attempts, e,
                )
            else:
                text = _extract_text(response)
                if not text:
                    logger.error("Generation service returned an empty document")
                    raise GenerationFailed(
                        "generation service returned no content", status=None, attempts=attempt
                    )
                logger.info("Generation succeeded on attempt %s (%s chars)", attempt, len(text))
                return GenerationResult(text=text, attempts=attempt, model=self.model)

            if attempt < self.max_attempts:
                await self._sleep(self.retry_delay)

        raise GenerationFailed(last_message, status=last_status, attempts=self.max_attempts)


def _extract_text(response) -> str:
    choices = getattr(response, "choices", None)
    if not choices:
        return ""
    content = choices[0].message.content
    return content.strip() if content else ""
