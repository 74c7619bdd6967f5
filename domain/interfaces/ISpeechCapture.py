from abc import ABC, abstractmethod
from typing import Callable

from domain.models import CaptureEvent


CaptureListener = Callable[[CaptureEvent], None]


class ISpeechCapture(ABC):
    """
    Speech capture capability (microphone + recogniser).

    Event contract for one capture session, delivered to `listener` on the
    event loop thread:
      - zero or more CaptureEvent.transcript(text, is_final)
      - optionally CaptureEvent.failure(error)
      - exactly one CaptureEvent.end() to close the session
    Providers are allowed to misbehave (late or duplicate events); the
    SpeechCaptureAdapter filters them.
    """

    @abstractmethod
    async def start(self, locale: str, listener: CaptureListener) -> None:
        """
        Begin capturing. Returns once capture is under way.
        Raises when the capability cannot begin (permission denied, busy device).
        """
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop capturing. Raises when nothing is being captured."""
        ...
