"""
Dependency Injection Container — bootstrap wiring of all concrete implementations.

Pure Python, no FastAPI imports. Providers are chosen from Settings and
wired into the application-layer adapters and the TurnCoordinator.

Providers are imported inside the factory functions: the local ones pull
in heavy models (faster-whisper, Coqui) and audio devices, and only the
configured ones should be loaded.

Configuration:
- LLM: Gemini (default) or Ollama
- STT: Local Whisper (default) or Deepgram, behind the microphone capture
- TTS: ElevenLabs (default) or local Coqui, behind the speaker playback
"""
import logging
from typing import Optional

from application.NarrationPlayerAdapter import NarrationPlayerAdapter
from application.NarrativeGenerator import NarrativeGenerator
from application.NarrativeState import NarrativeState
from application.SpeechCaptureAdapter import SpeechCaptureAdapter
from application.TurnCoordinator import TurnCoordinator
from domain.interfaces.ILargeLanguageModel import ILargeLanguageModel
from domain.interfaces.ISpeechCapture import ISpeechCapture
from domain.interfaces.ISpeechPlayback import ISpeechPlayback
from domain.interfaces.ISpeechToText import ISpeechToText
from domain.interfaces.ITextToSpeech import ITextToSpeech
from domain.models import SessionSnapshot
from infrastructures.events import EventBus, SESSION_STATE_TOPIC
from _bootstrap.settings import Settings

logger = logging.getLogger(__name__)


def build_llm(settings: Settings) -> ILargeLanguageModel:
    if settings.llm_provider == "ollama":
        from infrastructures.LLM import OllamaLLM
        return OllamaLLM()
    from infrastructures.GeminiLLM import GeminiLLM
    return GeminiLLM()


def build_transcriber(settings: Settings) -> ISpeechToText:
    if settings.stt_provider == "deepgram":
        from infrastructures.DeepgramSTT import DeepgramSTT
        return DeepgramSTT()
    from infrastructures.SpeechToText import WhisperSTT
    return WhisperSTT()


def build_synthesizer(settings: Settings) -> ITextToSpeech:
    if settings.tts_provider == "coqui":
        from infrastructures.TextToSpeech import CoquiTTS
        return CoquiTTS()
    from infrastructures.ElevenLabsTTS import ElevenLabsTTS
    return ElevenLabsTTS()


def build_capture(settings: Settings) -> ISpeechCapture:
    from infrastructures.Microphone import MicrophoneCapture
    return MicrophoneCapture(transcriber=build_transcriber(settings))


def build_playback(settings: Settings) -> ISpeechPlayback:
    from infrastructures.SpeakerPlayback import SpeakerPlayback
    return SpeakerPlayback(synthesizer=build_synthesizer(settings))


class Container:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        llm_service: Optional[ILargeLanguageModel] = None,
        capture_capability: Optional[ISpeechCapture] = None,
        playback_capability: Optional[ISpeechPlayback] = None,
    ):
        try:
            self.settings = settings or Settings.from_env()

            # ── Infrastructure: Event Bus ────────────────────────────────
            self.event_bus = EventBus()
            logger.info("[Container] Event bus initialized")

            # ── Infrastructure: capabilities ─────────────────────────────
            logger.info("[Container] Initializing %s LLM...", self.settings.llm_provider)
            self.llm_service = llm_service or build_llm(self.settings)

            logger.info("[Container] Initializing microphone capture (%s STT)...", self.settings.stt_provider)
            self.capture_capability = capture_capability or build_capture(self.settings)

            logger.info("[Container] Initializing speaker playback (%s TTS)...", self.settings.tts_provider)
            self.playback_capability = playback_capability or build_playback(self.settings)

            # ── Application: adapters (DI injected) ──────────────────────
            self.narrative_state = NarrativeState(history_window=self.settings.history_window)
            self.capture_adapter = SpeechCaptureAdapter(self.capture_capability)
            self.narrative_generator = NarrativeGenerator(
                llm_service=self.llm_service,
                strict_labels=self.settings.strict_choice_labels,
            )
            self.narration_player = NarrationPlayerAdapter(
                self.playback_capability,
                timeout=self.settings.playback_timeout,
            )

            # ── Application: TurnCoordinator (Main Workflow) ─────────────
            async def event_callback(snapshot: SessionSnapshot):
                """Callback for broadcasting session snapshots to the event bus."""
                await self.event_bus.publish(
                    topic=SESSION_STATE_TOPIC,
                    event_type=SESSION_STATE_TOPIC,
                    data=snapshot.to_dict(),
                )

            self.turn_coordinator = TurnCoordinator(
                capture=self.capture_adapter,
                generator=self.narrative_generator,
                player=self.narration_player,
                narrative=self.narrative_state,
                locale=self.settings.capture_locale,
                capture_timeout=self.settings.capture_timeout,
                event_callback=event_callback,
            )

            logger.info("[Container] All services initialized successfully")
        except Exception as e:
            logger.exception("[Container] INITIALIZATION FAILED: %s", e)
            raise
