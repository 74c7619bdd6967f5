"""
Ollama implementation of ILargeLanguageModel for running the narrator offline.

Talks to a local Ollama server over its REST API with httpx.

Env vars: OLLAMA_BASE_URL (default http://localhost:11434), OLLAMA_MODEL (default llama3)
"""
import logging
import os
from typing import Optional

import httpx

from domain.interfaces.ILargeLanguageModel import ILargeLanguageModel

logger = logging.getLogger(__name__)


class OllamaLLM(ILargeLanguageModel):
    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.8,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = (base_url or os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")).rstrip("/")
        self._model = model or os.environ.get("OLLAMA_MODEL", "llama3")
        self._temperature = temperature
        self._timeout = timeout
        self._transport = transport
        logger.info("[OllamaLLM] Using %s at %s", self._model, self._base_url)

    async def complete(self, system_prompt: str, user_message: str) -> str:
        """One non-streaming generation; raises httpx errors on transport or HTTP failure."""
        payload = {
            "model": self._model,
            "prompt": self._build_prompt(system_prompt, user_message),
            "stream": False,
            "options": {"temperature": self._temperature},
        }

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(f"{self._base_url}/api/generate", json=payload)
            response.raise_for_status()
            data = response.json()

        return data.get("response", "").strip()

    @staticmethod
    def _build_prompt(system_prompt: str, user_message: str) -> str:
        # /api/generate takes one prompt string, not role messages
        return (
            f"### System:\n{system_prompt}\n\n"
            f"### User:\n{user_message}\n\n"
            f"### Assistant:\n"
        )
