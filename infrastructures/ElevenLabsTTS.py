"""
ElevenLabs Text-to-Speech Implementation.

ElevenLabs provides high-quality, natural-sounding narrator voices.
Audio is requested as raw 16-bit PCM and wrapped into WAV so the speaker
playback can decode every provider's output the same way.

Requires: ELEVENLABS_API_KEY in environment variables
"""
import io
import logging
import os
from typing import Optional

import httpx
import numpy as np
import soundfile as sf

from domain.interfaces.ITextToSpeech import ITextToSpeech

logger = logging.getLogger(__name__)

_SAMPLE_RATE = 22050


class ElevenLabsTTS(ITextToSpeech):
    def __init__(
        self,
        api_key: Optional[str] = None,
        voice_id: Optional[str] = None,
        model_id: str = "eleven_turbo_v2_5",
        stability: float = 0.5,
        similarity_boost: float = 0.75,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        api_key = api_key or os.environ.get("ELEVENLABS_API_KEY")
        if not api_key:
            raise ValueError("ELEVENLABS_API_KEY environment variable is required")

        self._api_key = api_key
        self._base_url = "https://api.elevenlabs.io/v1"
        self._model_id = model_id  # Fast, low-latency model
        self._default_voice_id = voice_id or os.environ.get("ELEVENLABS_VOICE_ID", "21m00Tcm4TlvDq8ikWAM")  # Rachel
        self._voice_settings = {
            "stability": stability,
            "similarity_boost": similarity_boost,
            "style": 0.0,
            "use_speaker_boost": True,
        }
        self._transport = transport

    async def synthesize(self, text: str, voice_id: Optional[str] = None) -> bytes:
        """
        One-shot synthesis of a whole narration passage.

        Returns:
            WAV bytes (22.05kHz mono, 16-bit)
        """
        voice_id = voice_id or self._default_voice_id

        url = f"{self._base_url}/text-to-speech/{voice_id}"

        headers = {
            "xi-api-key": self._api_key,
            "Content-Type": "application/json",
        }

        payload = {
            "text": text,
            "model_id": self._model_id,
            "voice_settings": self._voice_settings,
        }

        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            response = await client.post(
                url,
                json=payload,
                headers=headers,
                params={"output_format": f"pcm_{_SAMPLE_RATE}"},
            )
            response.raise_for_status()
            pcm = response.content

        logger.debug("[ElevenLabsTTS] Received %d bytes of PCM", len(pcm))
        return _pcm16_to_wav(pcm, _SAMPLE_RATE)


def _pcm16_to_wav(pcm: bytes, sample_rate: int) -> bytes:
    samples = np.frombuffer(pcm, dtype=np.int16)
    buffer = io.BytesIO()
    sf.write(buffer, samples, sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()
