"""
Error taxonomy for the turn loop.

Adapters raise these; the TurnCoordinator absorbs every one of them so
the session can always return to idle.
"""
from typing import Optional


class VoiceAdventureError(Exception):
    """Base class. `cause` holds the provider-level exception, if any."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    def __str__(self) -> str:
        message = super().__str__()
        if self.cause is not None:
            return f"{message}: {self.cause}"
        return message


class CaptureStartError(VoiceAdventureError):
    """Speech capture could not begin (permission denied, device busy, already active)."""


class CaptureStopError(VoiceAdventureError):
    """Speech capture could not be stopped, usually because none is active."""


class GenerationError(VoiceAdventureError):
    """The narrative generator failed: transport error or unparseable response."""


class PlaybackError(VoiceAdventureError):
    """Narration playback reported an error or never finished."""
