from abc import ABC, abstractmethod


class ISpeechToText(ABC):
    """
    Interface for transcribing a recorded utterance.
    Used by the microphone capture capability once recording has ended.
    """

    @abstractmethod
    async def transcribe(self, audio_bytes: bytes, language: str = "en") -> str:
        """
        Transcribe a complete audio buffer to text.

        Args:
            audio_bytes: WAV-encoded audio of one utterance.
            language:    BCP-47 language code (region suffix allowed, e.g. "en-US").

        Returns:
            Transcribed text, empty when no speech was recognised.
        """
        ...
