"""
TurnCoordinator — the turn-taking state machine.

    idle ──request_capture──▶ listening ──transcript──▶ thinking ──▶ narrating ──▶ idle
                               │   ▲
          cancel / error /     │   │
          empty / timeout      ▼   │
                              idle

One turn is one asyncio task that awaits, in order, the capture result,
the generator and the narration. The state says which of the three is in
flight, so at most one runs at any moment. Every failure path ends in
idle and the player can simply speak again.

Only two commands come from outside: request_capture() and
cancel_capture(). Everything else is driven by the adapters' terminal
results. Readers get frozen SessionSnapshot objects.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, FrozenSet, Optional, Tuple

from application.NarrationPlayerAdapter import NarrationPlayerAdapter
from application.NarrativeGenerator import NarrativeGenerator, fallback_continuation
from application.NarrativeState import NarrativeState
from application.SpeechCaptureAdapter import CaptureSession, SpeechCaptureAdapter
from domain.errors import (
    CaptureStartError,
    CaptureStopError,
    GenerationError,
    PlaybackError,
)
from domain.models import GeneratedContinuation, SessionSnapshot, TurnRequest, TurnState

logger = logging.getLogger(__name__)


SnapshotCallback = Callable[[SessionSnapshot], Awaitable[None]]

_TRANSITIONS: Dict[TurnState, FrozenSet[TurnState]] = {
    TurnState.IDLE: frozenset({TurnState.LISTENING}),
    TurnState.LISTENING: frozenset({TurnState.THINKING, TurnState.IDLE}),
    TurnState.THINKING: frozenset({TurnState.NARRATING}),
    TurnState.NARRATING: frozenset({TurnState.IDLE}),
}


class InvalidTransition(RuntimeError):
    """A transition outside the turn table was attempted."""


class TurnCoordinator:
    def __init__(
        self,
        capture: SpeechCaptureAdapter,
        generator: NarrativeGenerator,
        player: NarrationPlayerAdapter,
        narrative: Optional[NarrativeState] = None,
        locale: str = "en-US",
        capture_timeout: Optional[float] = 30.0,
        event_callback: Optional[SnapshotCallback] = None,
    ):
        self._capture = capture
        self._generator = generator
        self._player = player
        self._narrative = narrative or NarrativeState()
        self._locale = locale
        self._capture_timeout = capture_timeout
        self._event_callback = event_callback  # For pushing snapshots to the presentation layer

        self._state = TurnState.IDLE
        self._pending_transcript: Optional[str] = None
        self._last_transcript: Optional[str] = None
        self._turn_number = 0
        self._session: Optional[CaptureSession] = None
        self._cancel_requested = False
        self._turn_task: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()

    # ============================================================================
    # Presentation boundary
    # ============================================================================

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def narrative(self) -> NarrativeState:
        return self._narrative

    def snapshot(self) -> SessionSnapshot:
        story = self._narrative.get_snapshot()
        return SessionSnapshot(
            state=self._state,
            story_text=story.story_text,
            choices=story.choices,
            pending_transcript=self._pending_transcript,
            last_transcript=self._last_transcript,
            turn_number=self._turn_number,
        )

    async def request_capture(self) -> bool:
        """
        Start listening for the player's choice.

        Returns False when the session is not idle, or when the capture
        capability refuses to start (the session is then back in idle).
        """
        if self._state is not TurnState.IDLE:
            logger.info("[TurnCoordinator] Capture request rejected while %s", self._state.value)
            return False

        self._cancel_requested = False
        await self._transition(TurnState.LISTENING)

        try:
            session = await self._capture.start_capture(self._locale)
        except CaptureStartError as e:
            logger.warning("[TurnCoordinator] Could not start capture: %s", e)
            await self._transition(TurnState.IDLE)
            return False

        if self._cancel_requested:
            # cancel_capture() arrived while start_capture() was in flight.
            await self._stop_quietly()
            await self._transition(TurnState.IDLE)
            return False

        self._session = session
        self._turn_task = asyncio.create_task(self._run_turn(session))
        return True

    async def cancel_capture(self) -> bool:
        """
        Stop listening and throw away whatever was heard.

        Only meaningful while listening; generation and narration cannot be
        cancelled. Returns True when the capture was cancelled.
        """
        if self._state is not TurnState.LISTENING:
            logger.info("[TurnCoordinator] Cancel ignored while %s", self._state.value)
            return False

        self._cancel_requested = True
        if self._session is None:
            # Start still pending; request_capture() finishes the cancellation.
            return True

        self._session = None
        await self._stop_quietly()
        await self._transition(TurnState.IDLE)
        logger.info("[TurnCoordinator] Capture cancelled by the player")
        return True

    async def wait_until_idle(self) -> None:
        """Block until the current turn (if any) has fully finished."""
        await self._idle.wait()

    async def shutdown(self) -> None:
        """Cancel any in-flight capture and wait for the turn task to wind down."""
        if self._state is TurnState.LISTENING:
            await self.cancel_capture()
        if self._turn_task is not None and not self._turn_task.done():
            await asyncio.gather(self._turn_task, return_exceptions=True)

    # ============================================================================
    # Turn pipeline: capture → generation → narration
    # ============================================================================

    async def _run_turn(self, session: CaptureSession) -> None:
        try:
            transcript = await self._await_transcript(session)
            if transcript is None:
                return

            request = self._begin_thinking(transcript)
            await self._transition(TurnState.THINKING)

            continuation, generated = await self._generate(request)
            self._narrative.apply_continuation(continuation, remember=generated)
            self._turn_number += 1
            await self._transition(TurnState.NARRATING)

            try:
                await self._player.speak(continuation.story)
            except PlaybackError as e:
                # Narration failure never rolls back the story update.
                logger.warning("[TurnCoordinator] Narration failed (non-fatal): %s", e)

            self._pending_transcript = None
            await self._transition(TurnState.IDLE)

        except asyncio.CancelledError:
            await self._recover("turn task cancelled")
            raise
        except Exception:
            logger.exception("[TurnCoordinator] Unexpected failure during turn")
            await self._recover("unexpected failure")

    async def _await_transcript(self, session: CaptureSession) -> Optional[str]:
        """Wait for capture to finish; return the transcript or None when the turn ends here."""
        try:
            if self._capture_timeout is None:
                result = await session.result()
            else:
                result = await asyncio.wait_for(session.result(), timeout=self._capture_timeout)
        except asyncio.TimeoutError:
            if self._session is not session:
                return None
            logger.warning("[TurnCoordinator] Capture timed out after %ss", self._capture_timeout)
            self._session = None
            await self._stop_quietly()
            await self._transition(TurnState.IDLE)
            return None

        if result.cancelled or self._session is not session or self._state is not TurnState.LISTENING:
            # Cancelled: cancel_capture() already moved us back to idle.
            logger.debug("[TurnCoordinator] Discarding result of cancelled session %d", session.session_id)
            return None

        self._session = None

        if result.error is not None:
            logger.warning("[TurnCoordinator] Capture failed: %s", result.error)
            await self._transition(TurnState.IDLE)
            return None

        if not result.has_transcript:
            logger.info("[TurnCoordinator] No speech detected")
            await self._transition(TurnState.IDLE)
            return None

        return result.transcript.strip()

    def _begin_thinking(self, transcript: str) -> TurnRequest:
        self._pending_transcript = transcript
        self._last_transcript = transcript
        snapshot = self._narrative.get_snapshot()
        return TurnRequest(
            story_history=self._narrative.story_history(),
            current_choices=snapshot.choices,
            user_choice=transcript,
        )

    async def _generate(self, request: TurnRequest) -> Tuple[GeneratedContinuation, bool]:
        """Return the continuation and whether it came from the model (False for the fallback)."""
        # The utterance is consumed here; nothing can feed it to the generator twice.
        self._pending_transcript = None
        try:
            return await self._generator.generate(request), True
        except GenerationError as e:
            logger.warning("[TurnCoordinator] Generation failed, using fallback: %s", e)
            return fallback_continuation(request.current_choices), False

    # ============================================================================
    # State bookkeeping
    # ============================================================================

    async def _transition(self, target: TurnState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise InvalidTransition(f"{self._state.value} -> {target.value}")
        logger.info("[TurnCoordinator] %s -> %s", self._state.value, target.value)
        self._state = target
        if target is TurnState.IDLE:
            self._idle.set()
        else:
            self._idle.clear()
        await self._publish()

    async def _recover(self, reason: str) -> None:
        """Force the machine back to idle after an unexpected failure."""
        if self._session is not None:
            self._session = None
            await self._stop_quietly()
        self._pending_transcript = None
        if self._state is not TurnState.IDLE:
            logger.error("[TurnCoordinator] Recovering to idle from %s (%s)", self._state.value, reason)
            self._state = TurnState.IDLE
            self._idle.set()
            await self._publish()

    async def _stop_quietly(self) -> None:
        try:
            await self._capture.stop_capture()
        except CaptureStopError as e:
            logger.debug("[TurnCoordinator] stop_capture: %s", e)

    async def _publish(self) -> None:
        if not self._event_callback:
            return
        try:
            await self._event_callback(self.snapshot())
        except Exception as e:
            # Presentation failures must not interrupt the turn
            logger.warning("[TurnCoordinator] Snapshot callback failed (non-fatal): %s", e)
