"""
SpeechCaptureAdapter — turns a callback-style capture capability into one
awaitable result per capture session.

The capability may send interim hypotheses, several finals, an error after
a transcript, or events after the session was closed. The adapter keeps
the first terminal signal (final transcript or error), resolves the
session on the end marker, and drops everything else.
"""
import asyncio
import itertools
import logging
from typing import Optional

from domain.errors import CaptureStartError, CaptureStopError
from domain.interfaces.ISpeechCapture import ISpeechCapture
from domain.models import (
    CAPTURE_END,
    CAPTURE_ERROR,
    CAPTURE_TRANSCRIPT,
    CaptureEvent,
    CaptureResult,
)

logger = logging.getLogger(__name__)


class CaptureSession:
    """Handle for one start/stop cycle of the capture capability."""

    def __init__(self, session_id: int, locale: str, future: "asyncio.Future[CaptureResult]"):
        self.session_id = session_id
        self.locale = locale
        self.partial_transcript: str = ""
        self._future = future
        self._transcript: Optional[str] = None
        self._error: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        return self._future.done()

    @property
    def has_terminal(self) -> bool:
        return self._transcript is not None or self._error is not None

    async def result(self) -> CaptureResult:
        """Wait for the session's single terminal outcome."""
        return await asyncio.shield(self._future)

    def _close(self, result: CaptureResult) -> None:
        if not self._future.done():
            self._future.set_result(result)


class SpeechCaptureAdapter:
    def __init__(self, capability: ISpeechCapture):
        self._capability = capability
        self._ids = itertools.count(1)
        self._active: Optional[CaptureSession] = None

    @property
    def active_session(self) -> Optional[CaptureSession]:
        return self._active

    async def start_capture(self, locale: str) -> CaptureSession:
        """
        Start a capture session.

        Raises:
            CaptureStartError: a capture is already active, or the capability
                refused to start.
        """
        if self._active is not None:
            raise CaptureStartError(
                f"capture session {self._active.session_id} is already active"
            )

        loop = asyncio.get_running_loop()
        session = CaptureSession(next(self._ids), locale, loop.create_future())
        self._active = session

        def listener(event: CaptureEvent) -> None:
            self._on_event(session, event)

        try:
            await self._capability.start(locale, listener)
        except Exception as e:
            if self._active is session:
                self._active = None
            session._close(CaptureResult(error=e))
            raise CaptureStartError("speech capture could not start", cause=e) from e

        if session.closed:
            # Capability failed synchronously inside start() and already sent its end marker.
            logger.info("[SpeechCapture] Session %d ended during start", session.session_id)
        else:
            logger.info("[SpeechCapture] Session %d started (locale=%s)", session.session_id, locale)
        return session

    async def stop_capture(self) -> None:
        """
        Stop the active capture and close its session as cancelled.

        Raises:
            CaptureStopError: no capture is active, or the capability failed to stop.
        """
        session = self._active
        if session is None:
            raise CaptureStopError("no capture is active")

        # Close first so whatever the capability emits while stopping is ignored.
        self._active = None
        session._close(CaptureResult(cancelled=True))
        logger.info("[SpeechCapture] Session %d stopped", session.session_id)

        try:
            await self._capability.stop()
        except Exception as e:
            raise CaptureStopError("speech capture could not be stopped", cause=e) from e

    # ------------------------------------------------------------------
    # Event filtering
    # ------------------------------------------------------------------

    def _on_event(self, session: CaptureSession, event: CaptureEvent) -> None:
        if session.closed:
            logger.debug(
                "[SpeechCapture] Dropping %s event for closed session %d",
                event.kind,
                session.session_id,
            )
            return

        if event.kind == CAPTURE_TRANSCRIPT:
            if not event.is_final:
                session.partial_transcript = event.text
                return
            if session.has_terminal:
                logger.debug(
                    "[SpeechCapture] Ignoring extra final transcript for session %d",
                    session.session_id,
                )
                return
            session._transcript = event.text
            session.partial_transcript = event.text

        elif event.kind == CAPTURE_ERROR:
            if session.has_terminal:
                logger.debug(
                    "[SpeechCapture] Ignoring error after terminal signal for session %d: %s",
                    session.session_id,
                    event.error,
                )
                return
            session._error = event.error or RuntimeError("unknown capture error")
            session.partial_transcript = ""
            logger.warning(
                "[SpeechCapture] Session %d reported an error: %s", session.session_id, session._error
            )

        elif event.kind == CAPTURE_END:
            if self._active is session:
                self._active = None
            if session._error is not None:
                session._close(CaptureResult(error=session._error))
            else:
                session._close(CaptureResult(transcript=session._transcript))
            logger.info("[SpeechCapture] Session %d ended", session.session_id)

        else:
            logger.debug("[SpeechCapture] Unknown capture event kind %r", event.kind)
