"""
NarrativeState — the story text and choice pair the player is looking at.

Single writer: only the TurnCoordinator calls apply_continuation. The
current view is one frozen NarrativeSnapshot, replaced by a single
reference swap, so a reader can never see new story text next to old
choices.
"""
import logging
from collections import deque
from typing import Deque, Sequence

from domain.models import (
    GeneratedContinuation,
    NarrativeSnapshot,
    OPENING_STORY,
    SEED_CHOICES,
)

logger = logging.getLogger(__name__)

_DEFAULT_HISTORY_WINDOW = 5


class NarrativeState:
    def __init__(
        self,
        opening_story: str = OPENING_STORY,
        seed_choices: Sequence[str] = SEED_CHOICES,
        history_window: int = _DEFAULT_HISTORY_WINDOW,
    ):
        if history_window < 1:
            raise ValueError("history_window must be at least 1")
        self._snapshot = NarrativeSnapshot(story_text=opening_story, choices=tuple(seed_choices))
        # Past passages, newest last. Bounded so prompts stay small.
        self._passages: Deque[str] = deque([opening_story], maxlen=history_window)

    def get_snapshot(self) -> NarrativeSnapshot:
        return self._snapshot

    def apply_continuation(
        self, continuation: GeneratedContinuation, remember: bool = True
    ) -> NarrativeSnapshot:
        """
        Replace story text and choices together and return the new snapshot.

        remember=False keeps the passage out of story_history(), used for
        fallback messages the model should not build on.
        """
        snapshot = NarrativeSnapshot(story_text=continuation.story, choices=continuation.choices)
        self._snapshot = snapshot
        if remember:
            self._passages.append(continuation.story)
        logger.info(
            "[NarrativeState] Applied continuation (%d chars), choices=%s",
            len(continuation.story),
            list(continuation.choices),
        )
        return snapshot

    def story_history(self) -> str:
        """The most recent passages, oldest first, separated by blank lines."""
        return "\n\n".join(self._passages)
