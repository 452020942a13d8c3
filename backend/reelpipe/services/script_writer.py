"""Narration script generation through the LLM adapter layer."""

import logging
import math
from typing import Optional

from reelpipe.errors import GenerationError
from reelpipe.schemas.job import VideoStyle
from reelpipe.services.base import ScriptGenerator
from reelpipe.services.llm import LLMAdapter

logger = logging.getLogger(__name__)

STYLE_INSTRUCTIONS = {
    VideoStyle.NEWS: (
        "Write in a professional, informative news style with clear, concise language. "
        "Use present tense and include relevant facts and statistics."
    ),
    VideoStyle.SOCIAL: (
        "Write in an engaging, conversational style suited to social media. "
        "Use short sentences and end with a call to action."
    ),
    VideoStyle.EDUCATIONAL: (
        "Write in an explanatory style that breaks complex topics into understandable "
        "concepts. Use analogies and examples."
    ),
    VideoStyle.ENTERTAINMENT: (
        "Write in an entertaining style with humor and personality. "
        "Use storytelling techniques to keep the audience engaged."
    ),
    VideoStyle.DOCUMENTARY: (
        "Write in a documentary style with an authoritative voice, detailed explanations "
        "and historical context where relevant."
    ),
}

SYSTEM_PROMPT = (
    "You write voiceover scripts for short videos. Reply with the narration text only: "
    "no title, no headings, no stage directions, no speaker labels."
)


def target_word_count(duration_seconds: int, words_per_minute: int = 150) -> int:
    """Words that fit in the target duration at the given speaking pace.

    Examples:
        >>> target_word_count(60)
        150
        >>> target_word_count(45)
        112
    """
    return max(1, math.floor(duration_seconds * words_per_minute / 60))


def build_script_prompt(
    topic: str,
    style: VideoStyle,
    duration_seconds: int,
    words_per_minute: int = 150,
) -> str:
    """Build the user prompt for a narration script."""
    word_count = target_word_count(duration_seconds, words_per_minute)
    instructions = STYLE_INSTRUCTIONS.get(style, STYLE_INSTRUCTIONS[VideoStyle.NEWS])
    return (
        f"Create a compelling {style.value} video script about \"{topic}\" "
        f"that is about {word_count} words long.\n\n"
        f"Style: {instructions}\n\n"
        "Requirements:\n"
        f"- About {word_count} words\n"
        "- Engaging opening hook\n"
        "- Clear structure with beginning, middle, and end\n"
        "- Natural speaking rhythm\n"
        "- Specific examples or statistics where relevant\n"
        "- A strong conclusion or call to action\n\n"
        f"Topic: {topic}\n"
        f"Duration: {duration_seconds} seconds"
    )


def clean_script(text: str) -> str:
    """Drop a leading "Script:" label and collapse blank lines."""
    text = text.strip()
    if text.lower().startswith("script:"):
        text = text[len("script:"):].strip()
    lines = [line.strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


class LLMScriptGenerator(ScriptGenerator):
    """ScriptGenerator backed by an LLMAdapter.

    With no adapter every call fails with GenerationError, so a job can
    still report that script generation is not configured.
    """

    def __init__(
        self,
        adapter: Optional[LLMAdapter],
        *,
        temperature: float = 0.7,
        max_retries: int = 3,
        words_per_minute: int = 150,
    ):
        self.adapter = adapter
        self.temperature = temperature
        self.max_retries = max_retries
        self.words_per_minute = words_per_minute

    async def generate(self, topic: str, style: VideoStyle, duration_seconds: int) -> str:
        if self.adapter is None:
            raise GenerationError("No script generation provider configured")

        prompt = build_script_prompt(topic, style, duration_seconds, self.words_per_minute)
        try:
            raw = await self.adapter.generate_text(
                prompt,
                temperature=self.temperature,
                system_prompt=SYSTEM_PROMPT,
                max_retries=self.max_retries,
            )
        except Exception as e:
            logger.error(f"Script generation failed: {type(e).__name__}: {e}")
            raise GenerationError(f"Script generation failed: {e}") from e

        script = clean_script(raw)
        if not script:
            raise GenerationError("Script generation returned no text")
        logger.info(f"Generated {style.value} script: {len(script.split())} words")
        return script
