"""
NarrationPlayerAdapter — awaitable wrapper around the speech playback capability.

The capability reports completion through on_done/on_error callbacks. The
adapter turns them into one future per speak() call: the first callback
settles it, anything after that is ignored.
"""
import asyncio
import itertools
import logging
from typing import Optional

from domain.errors import PlaybackError
from domain.interfaces.ISpeechPlayback import ISpeechPlayback

logger = logging.getLogger(__name__)


class NarrationPlayerAdapter:
    def __init__(self, capability: ISpeechPlayback, timeout: Optional[float] = None):
        self._capability = capability
        self._timeout = timeout
        self._ids = itertools.count(1)
        self._outstanding: Optional[asyncio.Future] = None

    @property
    def is_speaking(self) -> bool:
        return self._outstanding is not None and not self._outstanding.done()

    async def speak(self, text: str) -> None:
        """
        Narrate `text` and return once playback has finished.

        Raises:
            PlaybackError: the capability reported an error, playback timed out,
                or another narration is still playing.
        """
        if self.is_speaking:
            raise PlaybackError("a narration is already playing")

        playback_id = next(self._ids)
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._outstanding = future

        def on_done() -> None:
            if future.done():
                logger.debug("[NarrationPlayer] Late completion for playback %d ignored", playback_id)
                return
            future.set_result(None)

        def on_error(error: BaseException) -> None:
            if future.done():
                logger.debug("[NarrationPlayer] Late error for playback %d ignored: %s", playback_id, error)
                return
            future.set_exception(PlaybackError("narration playback failed", cause=error))

        logger.info("[NarrationPlayer] Playback %d started (%d chars)", playback_id, len(text))
        try:
            self._capability.speak(text, on_done, on_error)
        except Exception as e:
            future.cancel()
            self._outstanding = None
            raise PlaybackError("narration playback could not start", cause=e) from e

        try:
            if self._timeout is None:
                await future
            else:
                await asyncio.wait_for(future, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            self._silence(playback_id)
            raise PlaybackError(f"narration did not finish within {self._timeout}s", cause=e) from e
        finally:
            self._outstanding = None

        logger.info("[NarrationPlayer] Playback %d finished", playback_id)

    def _silence(self, playback_id: int) -> None:
        try:
            self._capability.stop()
        except Exception as e:
            logger.warning("[NarrationPlayer] Could not stop playback %d: %s", playback_id, e)
