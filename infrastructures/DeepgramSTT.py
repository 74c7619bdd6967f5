"""
Deepgram Speech-to-Text Implementation (pre-recorded REST endpoint).

The player's utterance is recorded first and sent as one WAV buffer, so
the plain /v1/listen endpoint is all we need; it is called with httpx
like the ElevenLabs client.

Requires: DEEPGRAM_API_KEY in environment variables
"""
import logging
import os
from typing import Optional

import httpx

from domain.interfaces.ISpeechToText import ISpeechToText

logger = logging.getLogger(__name__)


class DeepgramSTT(ISpeechToText):
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "nova-2",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        api_key = api_key or os.environ.get("DEEPGRAM_API_KEY")
        if not api_key:
            raise ValueError("DEEPGRAM_API_KEY environment variable is required")

        self._api_key = api_key
        self._model = model
        self._base_url = "https://api.deepgram.com/v1"
        self._transport = transport

    async def transcribe(self, audio_bytes: bytes, language: str = "en") -> str:
        """
        One-shot transcription for a complete audio buffer.

        Args:
            audio_bytes: WAV audio (16kHz mono recommended)
            language: BCP-47 language code (e.g., "en-US", "fr")

        Returns:
            Complete transcription text, empty if nothing was recognised
        """
        params = {
            "model": self._model,
            "language": language,
            "punctuate": "true",
            "smart_format": "true",
        }
        headers = {
            "Authorization": f"Token {self._api_key}",
            "Content-Type": "audio/wav",
        }

        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            response = await client.post(
                f"{self._base_url}/listen", params=params, headers=headers, content=audio_bytes
            )
            response.raise_for_status()
            data = response.json()

        # Extract transcript from response
        channels = data.get("results", {}).get("channels", [])
        if channels and channels[0].get("alternatives"):
            return channels[0]["alternatives"][0].get("transcript", "").strip()

        logger.debug("[DeepgramSTT] Response carried no transcript")
        return ""
