"""
Google Gemini Implementation of ILargeLanguageModel.

Uses the modern google.genai SDK (2025+). The SDK call is blocking, so it
runs in a worker thread to keep the turn loop responsive.

Free tier: Get API key from https://aistudio.google.com
Env var: GOOGLE_API_KEY or GEMINI_API_KEY
"""
import asyncio
import logging
import os
from typing import Optional

from google import genai

from domain.interfaces.ILargeLanguageModel import ILargeLanguageModel

logger = logging.getLogger(__name__)


class GeminiLLM(ILargeLanguageModel):
    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        temperature: float = 0.9,
        max_output_tokens: int = 512,
    ):
        api_key = api_key or os.environ.get("GOOGLE_API_KEY") or os.environ.get("GEMINI_API_KEY")
        if not api_key:
            raise ValueError(
                "GOOGLE_API_KEY or GEMINI_API_KEY must be set. "
                "Get a free key at https://aistudio.google.com"
            )

        self._client = genai.Client(api_key=api_key)
        self._model_name = model_name or os.environ.get("GEMINI_MODEL", "gemini-2.0-flash")
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        logger.info("[GeminiLLM] Initialized with model: %s", self._model_name)

    async def complete(self, system_prompt: str, user_message: str) -> str:
        """
        One-shot completion for the next story passage.
        Plain text output; the narrative generator parses the choice lines.
        """
        response = await asyncio.to_thread(
            self._client.models.generate_content,
            model=self._model_name,
            contents=user_message,
            config=genai.types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=self._temperature,
                max_output_tokens=self._max_output_tokens,
            ),
        )

        text = response.text
        if not text:
            raise RuntimeError("Gemini returned an empty response")
        return text.strip()
