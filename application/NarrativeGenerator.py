"""
NarrativeGenerator — asks the language model to continue the story and
parses the reply into a GeneratedContinuation.

Expected reply shape:

    <one paragraph of story, possibly spanning several lines>
    CHOICE A: <first choice>
    CHOICE B: <second choice>

Transport failures and malformed replies both surface as GenerationError.
No retries happen here; the TurnCoordinator substitutes
fallback_continuation() so the player always has two choices.
"""
import logging
import re
from typing import Sequence, Tuple

from domain.errors import GenerationError
from domain.interfaces.ILargeLanguageModel import ILargeLanguageModel
from domain.models import GeneratedContinuation, TurnRequest

logger = logging.getLogger(__name__)


FALLBACK_STORY = (
    "An unexpected silence falls. It seems the winds of fate are confused. "
    "Let's try that again."
)

_NARRATOR_SYSTEM_PROMPT = """
You are the narrator of an interactive fantasy adventure game played by voice.

OUTPUT RULES:
- Continue the story with ONE engaging paragraph of around {min_words}-{max_words} words.
- Write in the second person ("you"). No headings, no lists, no markdown.
- End your response with two new, distinct choices for the player, formatted exactly as:
CHOICE A: [First choice text]
CHOICE B: [Second choice text]
- Each choice is a short action the player can say out loud (under 8 words).
"""

_TURN_MESSAGE = """
THE STORY SO FAR:
{story_history}

The player was offered these choices: "{choices}".
The player said: "{user_choice}".
"""

# Markdown emphasis around the label or around the whole choice is tolerated:
# "**CHOICE A:** Go left", "**CHOICE A: Go left**", "CHOICE A: *Go left*"
_CHOICE_LINE = r"^\s*(?P<open>[*_]*)\s*CHOICE\s+{label}\s*(?P<shut>[*_]*)\s*:(?P<text>.*)$"
_CHOICE_A = re.compile(_CHOICE_LINE.format(label="A"), re.IGNORECASE)
_CHOICE_B = re.compile(_CHOICE_LINE.format(label="B"), re.IGNORECASE)
_WRAPPED = re.compile(r"^(?P<mark>[*_]+)(?P<inner>[^*_]+)(?P=mark)$")
# Lenient mode only strips whatever "<label>:" prefix the model used.
_ANY_LABEL = re.compile(r"^\s*[^:]{1,24}:\s*(?P<text>.*?)\s*$")


def _unwrap_emphasis(text: str, label_mark: str) -> str:
    text = text.strip()
    if label_mark:
        # Emphasis opened before the label closes right after the colon or at the end of the line.
        if text.startswith(label_mark):
            text = text[len(label_mark):].strip()
        elif text.endswith(label_mark):
            text = text[: -len(label_mark)].strip()
    wrapped = _WRAPPED.match(text)
    return wrapped.group("inner").strip() if wrapped else text


def _strip_label(line: str, pattern: "re.Pattern[str]", strict: bool) -> str:
    match = pattern.match(line)
    if match:
        label_mark = "" if match.group("shut") else match.group("open")
        return _unwrap_emphasis(match.group("text"), label_mark)
    if strict:
        raise GenerationError(f"choice line does not carry the expected label: {line!r}")
    loose = _ANY_LABEL.match(line)
    return loose.group("text") if loose else line.strip()


def parse_continuation(raw_text: str, strict_labels: bool = True) -> GeneratedContinuation:
    """
    Split a model reply into story text and two choices.

    The last two non-empty lines are the choices; everything before them,
    joined with newlines, is the story.

    Raises:
        GenerationError: fewer than three non-empty lines, a choice line
            without its label (strict mode), or an invalid continuation
            (blank story, blank or duplicate choices).
    """
    lines = [line.rstrip() for line in (raw_text or "").splitlines() if line.strip()]
    if len(lines) < 3:
        raise GenerationError(
            f"expected a story and two choice lines, got {len(lines)} non-empty line(s)"
        )

    story = "\n".join(lines[:-2]).strip()
    choice_a = _strip_label(lines[-2], _CHOICE_A, strict_labels)
    choice_b = _strip_label(lines[-1], _CHOICE_B, strict_labels)

    try:
        return GeneratedContinuation(story=story, choices=(choice_a, choice_b))
    except ValueError as e:
        raise GenerationError("model reply is not a valid continuation", cause=e) from e


def fallback_continuation(current_choices: Sequence[str]) -> GeneratedContinuation:
    """Neutral in-story message that re-offers the choices already on screen."""
    return GeneratedContinuation(story=FALLBACK_STORY, choices=tuple(current_choices))


class NarrativeGenerator:
    """
    Narrative Generator Client.

    Wraps an ILargeLanguageModel; builds the narrator prompt, calls the
    model once and parses the result.
    """

    def __init__(
        self,
        llm_service: ILargeLanguageModel,
        strict_labels: bool = True,
        target_words: Tuple[int, int] = (40, 60),
    ):
        self._llm = llm_service
        self._strict_labels = strict_labels
        self._target_words = target_words

    async def generate_continuation(
        self,
        story_history: str,
        current_choices: Sequence[str],
        user_choice: str,
    ) -> GeneratedContinuation:
        """
        Continue the story from the player's utterance.

        Raises:
            GenerationError: the model call failed or its reply could not be parsed.
        """
        request = TurnRequest(
            story_history=story_history,
            current_choices=tuple(current_choices),
            user_choice=user_choice,
        )
        return await self.generate(request)

    async def generate(self, request: TurnRequest) -> GeneratedContinuation:
        system_prompt, user_message = self.build_prompt(request)
        logger.info("[NarrativeGenerator] Sending choice to the model: %r", request.user_choice)

        try:
            raw_text = await self._llm.complete(system_prompt, user_message)
        except Exception as e:
            logger.warning("[NarrativeGenerator] Model call failed: %s", e)
            raise GenerationError("text generation request failed", cause=e) from e

        logger.debug("[NarrativeGenerator] Raw reply: %r", raw_text)
        continuation = parse_continuation(raw_text, strict_labels=self._strict_labels)
        logger.info("[NarrativeGenerator] New choices: %s", list(continuation.choices))
        return continuation

    def build_prompt(self, request: TurnRequest) -> Tuple[str, str]:
        min_words, max_words = self._target_words
        system_prompt = _NARRATOR_SYSTEM_PROMPT.format(min_words=min_words, max_words=max_words)
        user_message = _TURN_MESSAGE.format(
            story_history=request.story_history.strip() or "(The adventure is just beginning)",
            choices=", ".join(request.current_choices),
            user_choice=request.user_choice.strip(),
        )
        return system_prompt.strip(), user_message.strip()
