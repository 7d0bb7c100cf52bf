"""Text generation backends used by prefill."""

from __future__ import annotations

import os

from tradedocs.generation.client import DeterministicTextGenerator, TextGenerator

GENERATION_BACKEND_ENV = "TRADEDOCS_GENERATION_BACKEND"


def build_text_generator() -> TextGenerator:
    """Build the text generator selected by TRADEDOCS_GENERATION_BACKEND.

    ``deterministic`` (default) or ``anthropic``.

    Raises:
        ValueError: If the backend is unknown, or anthropic is selected without
            ANTHROPIC_API_KEY.
    """
    backend = os.environ.get(GENERATION_BACKEND_ENV, "deterministic").strip().lower()

    if backend == "anthropic":
        from tradedocs.generation.anthropic_client import AnthropicTextGenerator

        return AnthropicTextGenerator()

    if backend != "deterministic":
        raise ValueError(
            f"Unknown {GENERATION_BACKEND_ENV} value {backend!r}; "
            "expected 'deterministic' or 'anthropic'"
        )

    return DeterministicTextGenerator()


__all__ = [
    "GENERATION_BACKEND_ENV",
    "DeterministicTextGenerator",
    "TextGenerator",
    "build_text_generator",
]
