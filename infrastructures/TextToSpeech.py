"""
Local narration voice with Coqui TTS (implements ITextToSpeech).

No API key; the model is downloaded on first use. Output is WAV at the
model's own sample rate so the speaker playback can decode it directly.

Env var: COQUI_MODEL (default "tts_models/en/ljspeech/tacotron2-DDC")
"""
import asyncio
import io
import logging
import os
from typing import Optional

import numpy as np
import soundfile as sf
from TTS.api import TTS

from domain.interfaces.ITextToSpeech import ITextToSpeech

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "tts_models/en/ljspeech/tacotron2-DDC"
_FALLBACK_SAMPLE_RATE = 22050


class CoquiTTS(ITextToSpeech):
    def __init__(self, model_name: Optional[str] = None):
        self._model_name = model_name or os.environ.get("COQUI_MODEL", _DEFAULT_MODEL)
        self._tts = TTS(self._model_name)
        synthesizer = getattr(self._tts, "synthesizer", None)
        self._sample_rate = getattr(synthesizer, "output_sample_rate", None) or _FALLBACK_SAMPLE_RATE
        logger.info("[CoquiTTS] Loaded %s (%d Hz)", self._model_name, self._sample_rate)

    async def synthesize(self, text: str, voice_id: Optional[str] = None) -> bytes:
        """
        Render one narration passage to WAV bytes.
        Single-speaker models ignore voice_id; multi-speaker models use it as the speaker name.
        """
        return await asyncio.to_thread(self._render, text, voice_id)

    def _render(self, text: str, voice_id: Optional[str]) -> bytes:
        kwargs = {"speaker": voice_id} if voice_id and getattr(self._tts, "is_multi_speaker", False) else {}
        samples = np.asarray(self._tts.tts(text, **kwargs), dtype=np.float32)

        buffer = io.BytesIO()
        sf.write(buffer, samples, self._sample_rate, format="WAV", subtype="PCM_16")
        return buffer.getvalue()
