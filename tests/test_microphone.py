"""MicrophoneCapture driven through an in-memory input stream; no audio device is opened."""
import asyncio
from typing import List, Optional

import numpy as np
import pytest

from domain.interfaces.ISpeechToText import ISpeechToText
from domain.models import CaptureEvent, TurnState
from infrastructures.Microphone import MicrophoneCapture

from conftest import wait_idle

LOUD = np.full((1600, 1), 2000, dtype=np.int16)


class MockInputStream:
    def __init__(self, **kwargs):
        self.callback = kwargs["callback"]
        self.started = False
        self.closed = False

    def start(self):
        self.started = True

    def stop(self):
        pass

    def close(self):
        self.closed = True

    def feed(self, block: np.ndarray) -> None:
        self.callback(block, len(block), None, None)


class MockTranscriber(ISpeechToText):
    """Returns `text`; holds the call open until `release` is set, when one is given."""

    def __init__(self, text: str = "Enter the cave", release: Optional[asyncio.Event] = None):
        self.text = text
        self.release = release
        self.entered = asyncio.Event()
        self.languages: List[str] = []

    async def transcribe(self, audio_bytes: bytes, language: str = "en") -> str:
        self.languages.append(language)
        self.entered.set()
        if self.release is not None:
            await self.release.wait()
        return self.text


@pytest.fixture
def streams():
    return []


@pytest.fixture
def make_microphone(streams):
    def factory(transcriber: ISpeechToText) -> MicrophoneCapture:
        def open_stream(**kwargs):
            stream = MockInputStream(**kwargs)
            streams.append(stream)
            return stream

        return MicrophoneCapture(transcriber, max_duration=0.3, stream_factory=open_stream)

    return factory


@pytest.mark.asyncio
async def test_speech_is_transcribed_and_reported(make_microphone, streams):
    transcriber = MockTranscriber()
    mic = make_microphone(transcriber)
    events: List[CaptureEvent] = []

    await mic.start("en-US", events.append)
    streams[0].feed(LOUD)
    await asyncio.wait_for(transcriber.entered.wait(), timeout=2)
    await asyncio.wait_for(mic._task, timeout=1)

    assert events == [CaptureEvent.transcript("Enter the cave"), CaptureEvent.end()]
    assert transcriber.languages == ["en-US"]
    assert streams[0].closed


@pytest.mark.asyncio
async def test_silence_ends_without_transcribing(make_microphone, streams):
    transcriber = MockTranscriber()
    mic = make_microphone(transcriber)
    events: List[CaptureEvent] = []

    await mic.start("en-US", events.append)
    await asyncio.wait_for(mic._task, timeout=2)

    assert events == [CaptureEvent.end()]
    assert not transcriber.entered.is_set()


@pytest.mark.asyncio
async def test_stop_abandons_a_pending_transcription(make_microphone, streams):
    transcriber = MockTranscriber(release=asyncio.Event())
    mic = make_microphone(transcriber)
    events: List[CaptureEvent] = []

    await mic.start("en-US", events.append)
    streams[0].feed(LOUD)
    await asyncio.wait_for(transcriber.entered.wait(), timeout=2)

    await asyncio.wait_for(mic.stop(), timeout=0.5)

    assert events == [CaptureEvent.end()]
    with pytest.raises(RuntimeError):
        await mic.stop()


@pytest.mark.asyncio
async def test_cancel_during_transcription_returns_to_idle(make_coordinator, make_microphone, streams, llm):
    transcriber = MockTranscriber(release=asyncio.Event())
    mic = make_microphone(transcriber)
    coordinator = make_coordinator(capture_capability=mic)

    assert await coordinator.request_capture() is True
    streams[0].feed(LOUD)
    await asyncio.wait_for(transcriber.entered.wait(), timeout=2)
    assert coordinator.state is TurnState.LISTENING

    assert await asyncio.wait_for(coordinator.cancel_capture(), timeout=0.5) is True
    await wait_idle(coordinator)

    assert coordinator.state is TurnState.IDLE
    assert llm.calls == []


@pytest.mark.asyncio
async def test_capture_timeout_during_transcription_returns_to_idle(make_coordinator, make_microphone, streams, llm):
    transcriber = MockTranscriber(release=asyncio.Event())
    mic = make_microphone(transcriber)
    coordinator = make_coordinator(capture_capability=mic, capture_timeout=0.5)

    await coordinator.request_capture()
    streams[0].feed(LOUD)
    await asyncio.wait_for(transcriber.entered.wait(), timeout=2)

    await wait_idle(coordinator, timeout=1.5)

    assert coordinator.state is TurnState.IDLE
    assert llm.calls == []

