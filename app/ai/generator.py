"""
generator.py — The downstream text-generation capability.

The gate only knows the Generator protocol:

    async generate(prompt) -> text

Two implementations:
  - GeminiGenerator: real Google Generative AI calls (requires GEMINI_API_KEY)
  - MockGenerator:   deterministic canned text, used in tests and local dev

build_generator() picks one once at startup; nothing downstream checks
for a missing client.
"""

import logging
import os
from typing import Protocol

# Python 3.14 + protobuf native extension can fail when importing Gemini deps.
# Keep this as default-only so users can still override it explicitly.
os.environ.setdefault("PROTOCOL_BUFFERS_PYTHON_IMPLEMENTATION", "python")

import google.generativeai as genai  # noqa: E402

from app.core.config import Settings  # noqa: E402

logger = logging.getLogger(__name__)


class Generator(Protocol):
    async def generate(self, prompt: str) -> str: ...


class MockGenerator:
    """Echo-style generator with no network access."""

    async def generate(self, prompt: str) -> str:
        return f"[MOCK] Response for: {prompt}"


class GeminiGenerator:
    """Thin async wrapper around google-generativeai."""

    def __init__(self, api_key: str, model: str) -> None:
        genai.configure(api_key=api_key)
        self.model = model

    async def generate(self, prompt: str) -> str:
        """
        Generate text from the configured Gemini model.

        Raises:
            Exception: Gemini SDK errors propagate after being logged.
        """
        try:
            gemini_model = genai.GenerativeModel(self.model)
            response = await gemini_model.generate_content_async(prompt)
            return response.text
        except Exception as exc:
            logger.error("Gemini API error (model=%s): %s", self.model, exc)
            raise


def build_generator(settings: Settings) -> Generator:
    if settings.ai_mock_mode:
        logger.info("Generator initialised in MOCK mode")
        return MockGenerator()
    if not settings.gemini_api_key:
        logger.warning(
            "GEMINI_API_KEY not set — falling back to mock mode. "
            "Set AI_MOCK_MODE=true to silence this warning."
        )
        return MockGenerator()
    logger.info("Generator initialised in REAL mode (model: %s)", settings.gemini_model)
    return GeminiGenerator(settings.gemini_api_key, settings.gemini_model)
