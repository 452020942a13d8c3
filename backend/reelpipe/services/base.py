"""Abstract interfaces for the pipeline's external collaborators.

The executor only ever talks to these four classes. Concrete adapters
(LLM, stock photo APIs, Cloud Text-to-Speech, ffmpeg) live beside this
module; tests substitute deterministic fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from reelpipe.schemas.job import VideoStyle
from reelpipe.schemas.media import AudioRef, ImageRef, VideoDescriptor


class ScriptGenerator(ABC):
    """Writes narration text for a topic."""

    @abstractmethod
    async def generate(self, topic: str, style: VideoStyle, duration_seconds: int) -> str:
        """Generate a narration script.

        Args:
            topic: Subject of the video.
            style: Tone and pacing of the narration.
            duration_seconds: Target spoken length.

        Returns:
            Script text, ready to be read aloud.

        Raises:
            GenerationError: If no provider is configured or the call fails.
        """
        ...


class ImageProvider(ABC):
    """Finds still images illustrating a topic."""

    @abstractmethod
    async def search(self, topic: str, count: int, *, job_id: str) -> list[ImageRef]:
        """Collect up to ``count`` images for the topic.

        Returning fewer than ``count`` is allowed.

        Raises:
            ProviderError: If nothing was found and no fallback is configured.
        """
        ...


class SpeechSynthesizer(ABC):
    """Turns script text into narration audio."""

    @abstractmethod
    async def synthesize(self, text: str, *, job_id: str) -> AudioRef:
        """Synthesize narration.

        The returned duration is the timing source for the whole video.

        Raises:
            SynthesisError: If synthesis fails.
        """
        ...


class VideoEncoder(ABC):
    """Assembles images and narration into the final video."""

    @abstractmethod
    async def assemble(
        self,
        script: str,
        images: list[ImageRef],
        audio: AudioRef,
        *,
        captions: bool,
        job_id: str,
        style: VideoStyle,
    ) -> VideoDescriptor:
        """Render the video.

        Raises:
            EncodingError: If rendering fails.
        """
        ...


@dataclass
class Collaborators:
    """The set of adapters one executor runs jobs with."""

    script_generator: ScriptGenerator
    image_provider: ImageProvider
    speech_synthesizer: SpeechSynthesizer
    video_encoder: VideoEncoder

    async def aclose(self) -> None:
        """Close the network clients of adapters that own one."""
        for adapter in (
            self.script_generator,
            self.image_provider,
            self.speech_synthesizer,
            self.video_encoder,
        ):
            close = getattr(adapter, "aclose", None)
            if close is not None:
                await close()
