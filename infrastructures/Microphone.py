"""
Microphone speech capture (implements ISpeechCapture).

Records 16kHz mono PCM with sounddevice until the player stops talking
(trailing silence), the maximum duration is reached, or stop() is called.
The recording is then handed to an ISpeechToText provider and the result
is reported through the capture listener:

    transcript(final) → end      speech recognised
    end                          nothing said
    error → end                  device or recogniser failure

stop() abandons the recording, including a transcription already under way.
The end marker is still emitted.
"""
import asyncio
import io
import logging
import time
from typing import Any, Callable, List, Optional

import numpy as np
import soundfile as sf

from domain.interfaces.ISpeechCapture import CaptureListener, ISpeechCapture
from domain.interfaces.ISpeechToText import ISpeechToText
from domain.models import CaptureEvent

logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000
CHANNELS = 1
DTYPE = "int16"
_POLL_SECONDS = 0.1


def _open_input_stream(**kwargs: Any):
    # Imported on first use; loading sounddevice requires PortAudio.
    import sounddevice as sd
    return sd.InputStream(**kwargs)


class MicrophoneCapture(ISpeechCapture):
    def __init__(
        self,
        transcriber: ISpeechToText,
        sample_rate: int = SAMPLE_RATE,
        silence_threshold: float = 500.0,
        silence_duration: float = 1.5,
        max_duration: float = 20.0,
        stream_factory: Optional[Callable[..., Any]] = None,
    ):
        self._transcriber = transcriber
        self._sample_rate = sample_rate
        self._silence_threshold = silence_threshold
        self._silence_duration = silence_duration
        self._max_duration = max_duration
        self._stream_factory = stream_factory or _open_input_stream

        self._stream: Optional[Any] = None
        self._chunks: List[np.ndarray] = []
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    async def start(self, locale: str, listener: CaptureListener) -> None:
        if self._task is not None and not self._task.done():
            raise RuntimeError("microphone is already recording")

        self._chunks = []
        self._stopped = False

        def callback(indata, frames, time_info, status):
            if status:
                logger.warning("[Microphone] Audio status: %s", status)
            self._chunks.append(indata.copy())

        # Opening the device is where permission and busy-device errors surface.
        stream = self._stream_factory(
            samplerate=self._sample_rate,
            channels=CHANNELS,
            dtype=DTYPE,
            callback=callback,
            blocksize=int(self._sample_rate * _POLL_SECONDS),  # 100ms blocks
        )
        try:
            stream.start()
        except Exception:
            stream.close()
            raise
        self._stream = stream
        logger.info("[Microphone] Recording started (locale=%s)", locale)

        self._task = asyncio.create_task(self._record_and_transcribe(locale, listener))

    async def stop(self) -> None:
        if self._task is None or self._task.done():
            raise RuntimeError("microphone is not recording")
        self._stopped = True
        self._close_stream()
        # A transcription still in flight is abandoned with the recording.
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)

    # ------------------------------------------------------------------
    # Recording loop
    # ------------------------------------------------------------------

    async def _record_and_transcribe(self, locale: str, listener: CaptureListener) -> None:
        try:
            speech_seen = await self._wait_for_end_of_speech()
            self._close_stream()

            if self._stopped:
                logger.info("[Microphone] Recording abandoned")
            elif not speech_seen or not self._chunks:
                logger.info("[Microphone] No speech detected")
            else:
                audio = np.concatenate(self._chunks)
                logger.info("[Microphone] Recorded %.1fs of audio", len(audio) / self._sample_rate)
                transcript = await self._transcriber.transcribe(self._to_wav(audio), language=locale)
                if transcript.strip():
                    listener(CaptureEvent.transcript(transcript, is_final=True))
        except asyncio.CancelledError:
            logger.info("[Microphone] Recording cancelled")
            raise
        except Exception as e:
            logger.warning("[Microphone] Capture failed: %s", e)
            self._close_stream()
            listener(CaptureEvent.failure(e))
        finally:
            listener(CaptureEvent.end())

    async def _wait_for_end_of_speech(self) -> bool:
        """Poll the recorded blocks; return True if speech was heard before it ended."""
        started = time.monotonic()
        silence_start: Optional[float] = None
        speech_seen = False

        while not self._stopped:
            await asyncio.sleep(_POLL_SECONDS)
            now = time.monotonic()

            if now - started > self._max_duration:
                logger.info("[Microphone] Max duration reached")
                break

            if not self._chunks:
                continue

            recent = np.concatenate(self._chunks[-5:])  # Last 500ms
            rms = float(np.sqrt(np.mean(recent.astype(np.float32) ** 2)))

            if rms >= self._silence_threshold:
                speech_seen = True
                silence_start = None
            elif speech_seen:
                if silence_start is None:
                    silence_start = now
                elif now - silence_start > self._silence_duration:
                    logger.info("[Microphone] Silence detected, stopping")
                    break

        return speech_seen

    def _close_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()

    def _to_wav(self, audio: np.ndarray) -> bytes:
        buffer = io.BytesIO()
        sf.write(buffer, audio, self._sample_rate, format="WAV", subtype="PCM_16")
        return buffer.getvalue()
