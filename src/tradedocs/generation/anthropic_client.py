"""Anthropic-backed text generator implementing the TextGenerator protocol.

Configuration via environment variables:
- ANTHROPIC_API_KEY: Required. Fail-closed if missing.
- TRADEDOCS_ANTHROPIC_MODEL: Model identifier (default: claude-sonnet-4-20250514).
"""

from __future__ import annotations

import logging
import os
import time

import anthropic

logger = logging.getLogger(__name__)

ANTHROPIC_API_KEY_ENV = "ANTHROPIC_API_KEY"
ANTHROPIC_MODEL_ENV = "TRADEDOCS_ANTHROPIC_MODEL"
DEFAULT_MODEL = "claude-sonnet-4-20250514"

MAX_RETRIES = 2
RETRY_BACKOFF_BASE_SECONDS = 1.0
REQUEST_TIMEOUT_SECONDS = 60
MAX_TOKENS = 2048


class AnthropicTextGenerator:
    """Calls Claude through the Anthropic SDK.

    Temperature is fixed at 0. Rate-limit, 5xx and connection errors are
    retried with exponential backoff; anything else fails immediately.
    """

    def __init__(self, *, model: str | None = None, max_tokens: int | None = None) -> None:
        """Initialize the client.

        Raises:
            ValueError: If ANTHROPIC_API_KEY is not set.
        """
        api_key = os.environ.get(ANTHROPIC_API_KEY_ENV, "")
        if not api_key:
            raise ValueError(
                "ANTHROPIC_API_KEY environment variable is required when using the "
                "Anthropic backend. Set TRADEDOCS_GENERATION_BACKEND=deterministic "
                "to use the offline generator."
            )

        self._model = model or os.environ.get(ANTHROPIC_MODEL_ENV, DEFAULT_MODEL)
        self._max_tokens = max_tokens or MAX_TOKENS
        self._client = anthropic.Anthropic(api_key=api_key, timeout=REQUEST_TIMEOUT_SECONDS)

    @property
    def model(self) -> str:
        return self._model

    def call(self, prompt: str, *, json_mode: bool = False) -> str:
        """Send the prompt and return the first text block of the response.

        Raises:
            RuntimeError: If the call fails after all retries or is non-retryable.
        """
        system = (
            "You MUST respond with valid JSON only. No markdown, no explanation, "
            "no code fences. Output raw JSON."
            if json_mode
            else ""
        )
        messages: list[anthropic.types.MessageParam] = [{"role": "user", "content": prompt}]

        last_error: Exception | None = None
        for attempt in range(MAX_RETRIES + 1):
            try:
                response = self._client.messages.create(
                    model=self._model,
                    max_tokens=self._max_tokens,
                    temperature=0,
                    system=system,
                    messages=messages,
                )
                block = response.content[0]
                return str(block.text) if hasattr(block, "text") else str(block)

            except anthropic.RateLimitError as exc:
                last_error = exc
                logger.warning("Anthropic rate limit (attempt %d/%d)", attempt + 1, MAX_RETRIES + 1)
                _backoff(attempt)

            except anthropic.APIStatusError as exc:
                if exc.status_code < 500:
                    raise RuntimeError(
                        f"Anthropic API error (non-retryable): {exc.status_code}"
                    ) from exc
                last_error = exc
                logger.warning(
                    "Anthropic server error %d (attempt %d/%d)",
                    exc.status_code,
                    attempt + 1,
                    MAX_RETRIES + 1,
                )
                _backoff(attempt)

            except anthropic.APIConnectionError as exc:
                last_error = exc
                logger.warning(
                    "Anthropic connection error (attempt %d/%d)", attempt + 1, MAX_RETRIES + 1
                )
                _backoff(attempt)

        raise RuntimeError(
            f"Anthropic API call failed after {MAX_RETRIES + 1} attempts"
        ) from last_error


def _backoff(attempt: int) -> None:
    time.sleep(RETRY_BACKOFF_BASE_SECONDS * (2**attempt))
