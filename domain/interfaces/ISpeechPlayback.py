from abc import ABC, abstractmethod
from typing import Callable


class ISpeechPlayback(ABC):
    """
    Speech playback capability.

    `speak` returns as soon as playback has been scheduled. Completion is
    reported later through exactly one of the two callbacks, called on the
    event loop thread.
    """

    @abstractmethod
    def speak(
        self,
        text: str,
        on_done: Callable[[], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        """Silence any narration in progress. Its callbacks may still fire and are ignored."""
        ...
