from abc import ABC, abstractmethod


class ILargeLanguageModel(ABC):
    """
    Text generation capability used by the narrative generator.
    """

    @abstractmethod
    async def complete(self, system_prompt: str, user_message: str) -> str:
        """
        One-shot completion.

        Args:
            system_prompt: Narrator persona and output format rules.
            user_message:  Story so far, offered choices and the player's utterance.

        Returns:
            The raw response text. Implementations raise on transport failure;
            parsing is the caller's job.
        """
        ...
