"""
Domain models for the spoken adventure loop.

Everything here is a plain value object. Snapshots are frozen so the
presentation layer can read them freely while the TurnCoordinator owns
every mutation.
"""
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional, Tuple


OPENING_STORY = (
    "You stand at a crossroads. A dark cave looms to your left, "
    "and a sunny path stretches to your right."
)
SEED_CHOICES: Tuple[str, str] = ("Enter the cave", "Take the sunny path")


class TurnState(str, Enum):
    """Which external operation (if any) is currently in flight."""

    IDLE = "idle"
    LISTENING = "listening"
    THINKING = "thinking"
    NARRATING = "narrating"


def _validate_choices(choices) -> Tuple[str, str]:
    choices = tuple(choices)
    if len(choices) != 2:
        raise ValueError(f"exactly two choices are required, got {len(choices)}")
    first, second = choices
    if not isinstance(first, str) or not isinstance(second, str):
        raise ValueError("choices must be strings")
    if not first.strip() or not second.strip():
        raise ValueError("choices must be non-empty")
    return first, second


@dataclass(frozen=True)
class NarrativeSnapshot:
    """Immutable view of the story text together with its choice pair."""

    story_text: str
    choices: Tuple[str, str]

    def __post_init__(self):
        object.__setattr__(self, "choices", _validate_choices(self.choices))


@dataclass(frozen=True)
class GeneratedContinuation:
    """
    The generator's output: one new passage plus two fresh choices.

    Raises ValueError when the story is empty or the choices are blank
    or identical, so a malformed continuation never reaches the session.
    """

    story: str
    choices: Tuple[str, str]

    def __post_init__(self):
        if not self.story or not self.story.strip():
            raise ValueError("continuation story must be non-empty")
        first, second = _validate_choices(self.choices)
        if first.strip().casefold() == second.strip().casefold():
            raise ValueError(f"continuation choices must be distinct, got {first!r} twice")
        object.__setattr__(self, "choices", (first, second))


@dataclass(frozen=True)
class TurnRequest:
    """Ask the model to continue the story given what the player just said."""

    story_history: str
    current_choices: Tuple[str, str]
    user_choice: str


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only projection of the live session for rendering."""

    state: TurnState
    story_text: str
    choices: Tuple[str, str]
    pending_transcript: Optional[str] = None
    last_transcript: Optional[str] = None
    turn_number: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        data["choices"] = list(self.choices)
        return data


# ── Speech capture events ─────────────────────────────────────────────────────

CAPTURE_TRANSCRIPT = "transcript"
CAPTURE_ERROR = "error"
CAPTURE_END = "end"


@dataclass(frozen=True)
class CaptureEvent:
    """
    One signal from a speech capture capability.

    kind is one of "transcript", "error" or "end". Transcripts carry
    is_final=False for interim hypotheses.
    """

    kind: str
    text: str = ""
    is_final: bool = True
    error: Optional[BaseException] = None

    @classmethod
    def transcript(cls, text: str, is_final: bool = True) -> "CaptureEvent":
        return cls(kind=CAPTURE_TRANSCRIPT, text=text, is_final=is_final)

    @classmethod
    def failure(cls, error: BaseException) -> "CaptureEvent":
        return cls(kind=CAPTURE_ERROR, error=error)

    @classmethod
    def end(cls) -> "CaptureEvent":
        return cls(kind=CAPTURE_END)


@dataclass(frozen=True)
class CaptureResult:
    """The single terminal outcome of one capture session."""

    transcript: Optional[str] = None
    error: Optional[BaseException] = None
    cancelled: bool = False

    @property
    def has_transcript(self) -> bool:
        return bool(self.transcript and self.transcript.strip())
