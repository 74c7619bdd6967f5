"""
Speaker playback (implements ISpeechPlayback).

Synthesizes the narration with an ITextToSpeech provider, decodes the WAV
and plays it on the default output device. Playback blocks, so it runs in
a worker thread; the completion callbacks are called back on the event
loop.
stop() cancels a pending synthesis and silences the output device.
"""
import asyncio
import io
import logging
from typing import Callable, Optional, Set

import sounddevice as sd
import soundfile as sf

from domain.interfaces.ISpeechPlayback import ISpeechPlayback
from domain.interfaces.ITextToSpeech import ITextToSpeech

logger = logging.getLogger(__name__)


class SpeakerPlayback(ISpeechPlayback):
    def __init__(self, synthesizer: ITextToSpeech, voice_id: Optional[str] = None):
        self._synthesizer = synthesizer
        self._voice_id = voice_id
        self._tasks: Set[asyncio.Task] = set()

    def speak(
        self,
        text: str,
        on_done: Callable[[], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        task = asyncio.get_running_loop().create_task(self._narrate(text, on_done, on_error))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def stop(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        sd.stop()

    async def _narrate(
        self,
        text: str,
        on_done: Callable[[], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        try:
            wav_bytes = await self._synthesizer.synthesize(text, self._voice_id)
            await asyncio.to_thread(self._play_blocking, wav_bytes)
        except Exception as e:
            logger.warning("[SpeakerPlayback] Playback failed: %s", e)
            on_error(e)
            return
        on_done()

    @staticmethod
    def _play_blocking(wav_bytes: bytes) -> None:
        audio, sample_rate = sf.read(io.BytesIO(wav_bytes), dtype="float32")
        logger.info("[SpeakerPlayback] Playing %.1fs of audio", len(audio) / sample_rate)
        sd.play(audio, samplerate=sample_rate)
        sd.wait()  # Block until done
