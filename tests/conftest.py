"""Shared mocks and fixtures for the voice adventure test suite."""
import asyncio
from typing import Callable, List, Optional, Tuple

import pytest

from application.NarrationPlayerAdapter import NarrationPlayerAdapter
from application.NarrativeGenerator import NarrativeGenerator
from application.NarrativeState import NarrativeState
from application.SpeechCaptureAdapter import SpeechCaptureAdapter
from application.TurnCoordinator import TurnCoordinator
from domain.interfaces.ILargeLanguageModel import ILargeLanguageModel
from domain.interfaces.ISpeechCapture import CaptureListener, ISpeechCapture
from domain.interfaces.ISpeechPlayback import ISpeechPlayback
from domain.models import CaptureEvent, SessionSnapshot


CAVE_REPLY = (
    "You step into the damp cave. Water drips somewhere in the dark.\n"
    "CHOICE A: Light a torch\n"
    "CHOICE B: Call out into the darkness"
)


# ============================================================================
# Mock capabilities
# ============================================================================

class MockCapture(ISpeechCapture):
    """Speech capture driven by the test through emit()/say()."""

    def __init__(self, fail_start: Optional[BaseException] = None, fail_stop: Optional[BaseException] = None):
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.start_gate: Optional[asyncio.Event] = None
        self.listener: Optional[CaptureListener] = None
        self.active = False
        self.starts = 0
        self.stops = 0
        self.locales: List[str] = []

    async def start(self, locale: str, listener: CaptureListener) -> None:
        self.starts += 1
        self.locales.append(locale)
        if self.fail_start is not None:
            raise self.fail_start
        self.listener = listener
        if self.start_gate is not None:
            await self.start_gate.wait()
        self.active = True

    async def stop(self) -> None:
        if self.fail_stop is not None:
            raise self.fail_stop
        if not self.active:
            raise RuntimeError("not capturing")
        self.stops += 1
        self.active = False

    def emit(self, event: CaptureEvent) -> None:
        self.listener(event)

    def say(self, text: str) -> None:
        """A well-behaved recogniser: one final transcript, then the end marker."""
        self.emit(CaptureEvent.transcript(text))
        self.end()

    def end(self) -> None:
        self.active = False
        self.emit(CaptureEvent.end())


class MockLLM(ILargeLanguageModel):
    def __init__(self, reply: str = CAVE_REPLY, error: Optional[BaseException] = None):
        self.reply = reply
        self.error = error
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[Tuple[str, str]] = []

    async def complete(self, system_prompt: str, user_message: str) -> str:
        self.calls.append((system_prompt, user_message))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply


class MockPlayback(ISpeechPlayback):
    """
    mode:
      "done"   - completes on the next loop iteration
      "error"  - reports an error on the next loop iteration
      "manual" - the test calls the stored callbacks itself
      "raise"  - speak() itself raises
    """

    def __init__(self, mode: str = "done"):
        self.mode = mode
        self.spoken: List[str] = []
        self.callbacks: List[Tuple[Callable[[], None], Callable[[BaseException], None]]] = []
        self.stops = 0

    def speak(self, text, on_done, on_error) -> None:
        if self.mode == "raise":
            raise RuntimeError("no audio output device")
        self.spoken.append(text)
        self.callbacks.append((on_done, on_error))
        loop = asyncio.get_running_loop()
        if self.mode == "done":
            loop.call_soon(on_done)
        elif self.mode == "error":
            loop.call_soon(on_error, RuntimeError("speaker unplugged"))

    def stop(self) -> None:
        self.stops += 1


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def capture() -> MockCapture:
    return MockCapture()


@pytest.fixture
def llm() -> MockLLM:
    return MockLLM()


@pytest.fixture
def playback() -> MockPlayback:
    return MockPlayback()


@pytest.fixture
def published() -> List[SessionSnapshot]:
    return []


@pytest.fixture
def make_coordinator(capture, llm, playback, published):
    """Build a TurnCoordinator over the mocks; keyword arguments override the defaults."""

    def factory(**overrides) -> TurnCoordinator:
        async def record(snapshot: SessionSnapshot) -> None:
            published.append(snapshot)

        options = dict(
            capture=SpeechCaptureAdapter(overrides.pop("capture_capability", capture)),
            generator=NarrativeGenerator(overrides.pop("llm_service", llm)),
            player=NarrationPlayerAdapter(
                overrides.pop("playback_capability", playback),
                timeout=overrides.pop("playback_timeout", None),
            ),
            narrative=NarrativeState(),
            event_callback=record,
        )
        options.update(overrides)
        return TurnCoordinator(**options)

    return factory


async def wait_idle(coordinator: TurnCoordinator, timeout: float = 1.0) -> None:
    await asyncio.wait_for(coordinator.wait_until_idle(), timeout=timeout)


async def spin(times: int = 20) -> None:
    for _ in range(times):
        await asyncio.sleep(0)
