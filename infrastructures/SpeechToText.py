"""
Local speech recognition with faster-whisper (implements ISpeechToText).

No API key; the model is downloaded on first use. The microphone capture
hands over one short WAV utterance per turn, so a single blocking
transcribe call in a worker thread is enough.

Env vars: WHISPER_MODEL_SIZE (default "small"), WHISPER_DEVICE (default "cpu")
"""
import asyncio
import io
import logging
import os
from typing import Optional

import numpy as np
import soundfile as sf
from faster_whisper import WhisperModel

from domain.interfaces.ISpeechToText import ISpeechToText

logger = logging.getLogger(__name__)


class WhisperSTT(ISpeechToText):
    def __init__(self, model_size: Optional[str] = None, device: Optional[str] = None):
        model_size = model_size or os.environ.get("WHISPER_MODEL_SIZE", "small")
        device = device or os.environ.get("WHISPER_DEVICE", "cpu")
        # int8 keeps CPU inference fast enough for a spoken turn
        compute_type = "int8" if device == "cpu" else "float16"
        self._model = WhisperModel(model_size, device=device, compute_type=compute_type)
        logger.info("[WhisperSTT] Loaded %s model on %s", model_size, device)

    async def transcribe(self, audio_bytes: bytes, language: str = "en") -> str:
        """Transcribe one complete utterance; empty string when nothing was recognised."""
        return await asyncio.to_thread(self._transcribe_blocking, audio_bytes, language)

    def _transcribe_blocking(self, audio_bytes: bytes, language: str) -> str:
        audio, _ = sf.read(io.BytesIO(audio_bytes), dtype="float32")
        if audio.ndim > 1:
            audio = np.mean(audio, axis=1)

        # Whisper takes ISO 639-1 codes: "en-US" -> "en"
        segments, info = self._model.transcribe(
            audio,
            language=language.split("-")[0].lower() or None,
            beam_size=5,
            vad_filter=True,
        )
        text = " ".join(segment.text.strip() for segment in segments).strip()
        logger.debug("[WhisperSTT] %.1fs of audio -> %r", info.duration, text)
        return text
