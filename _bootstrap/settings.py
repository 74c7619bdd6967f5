"""
Runtime configuration, read once from the environment (.env is loaded by main.py).
"""
import os
from dataclasses import dataclass
from typing import Mapping, Optional


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _bool(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"expected a boolean, got {value!r}")


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip() or value.strip().lower() == "none":
        return None
    return float(value)


@dataclass(frozen=True)
class Settings:
    llm_provider: str = "gemini"
    stt_provider: str = "whisper"
    tts_provider: str = "elevenlabs"
    capture_locale: str = "en-US"
    capture_timeout: Optional[float] = 30.0
    playback_timeout: Optional[float] = None
    strict_choice_labels: bool = True
    history_window: int = 5
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        settings = cls(
            llm_provider=env.get("LLM_PROVIDER", cls.llm_provider).strip().lower(),
            stt_provider=env.get("STT_PROVIDER", cls.stt_provider).strip().lower(),
            tts_provider=env.get("TTS_PROVIDER", cls.tts_provider).strip().lower(),
            capture_locale=env.get("CAPTURE_LOCALE", cls.capture_locale).strip(),
            capture_timeout=_optional_float(env.get("CAPTURE_TIMEOUT_SECONDS", "30")),
            playback_timeout=_optional_float(env.get("PLAYBACK_TIMEOUT_SECONDS")),
            strict_choice_labels=_bool(env.get("STRICT_CHOICE_LABELS"), cls.strict_choice_labels),
            history_window=int(env.get("HISTORY_WINDOW", cls.history_window)),
            log_level=env.get("LOG_LEVEL", cls.log_level).strip().upper(),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.llm_provider not in ("gemini", "ollama"):
            raise ValueError(f"LLM_PROVIDER must be 'gemini' or 'ollama', got {self.llm_provider!r}")
        if self.stt_provider not in ("whisper", "deepgram"):
            raise ValueError(f"STT_PROVIDER must be 'whisper' or 'deepgram', got {self.stt_provider!r}")
        if self.tts_provider not in ("elevenlabs", "coqui"):
            raise ValueError(f"TTS_PROVIDER must be 'elevenlabs' or 'coqui', got {self.tts_provider!r}")
        if self.history_window < 1:
            raise ValueError("HISTORY_WINDOW must be at least 1")
