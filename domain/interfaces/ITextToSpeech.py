from abc import ABC, abstractmethod
from typing import Optional


class ITextToSpeech(ABC):
    """
    Interface for Text-to-Speech synthesis.
    """

    @abstractmethod
    async def synthesize(self, text: str, voice_id: Optional[str] = None) -> bytes:
        """
        Synthesize the full text into an audio buffer.

        Args:
            text:     The narration to speak.
            voice_id: Provider-specific voice identifier; None selects the default narrator.

        Returns:
            WAV-encoded audio bytes.
        """
        ...
