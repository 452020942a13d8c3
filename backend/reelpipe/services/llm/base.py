"""Abstract base class for LLM provider adapters.

Defines the async interface script writing relies on: a prompt in, plain
text out.
"""

from abc import ABC, abstractmethod
from typing import Optional


class LLMAdapter(ABC):
    """Abstract base class for LLM provider adapters.

    All adapters implement generate_text() with the same async signature
    and return the model's reply with surrounding whitespace removed.
    """

    @abstractmethod
    async def generate_text(
        self,
        prompt: str,
        *,
        temperature: float = 0.7,
        system_prompt: Optional[str] = None,
        max_retries: int = 3,
    ) -> str:
        """Generate free-form text from a prompt.

        Args:
            prompt: The user prompt to send to the model.
            temperature: Sampling temperature (0.0-1.0). Lower = more deterministic.
            system_prompt: Optional system/instruction prompt.
            max_retries: Maximum number of attempts on failure.

        Returns:
            The generated text.
        """
        ...
