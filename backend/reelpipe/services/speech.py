"""Narration synthesis with Google Cloud Text-to-Speech.

The client is synchronous, so requests run in a worker thread. Scripts
longer than the API's per-request input limit are split on sentence
boundaries and the MP3 segments are joined frame-wise.
"""

import asyncio
import logging
import re
from typing import Optional

from google.cloud import texttospeech
from google.cloud.texttospeech_v1.types import AudioConfig, SynthesisInput, VoiceSelectionParams

from reelpipe.config import SpeechConfig
from reelpipe.errors import SynthesisError
from reelpipe.schemas.media import AudioRef
from reelpipe.services import media_probe
from reelpipe.services.base import SpeechSynthesizer
from reelpipe.services.file_manager import FileManager

logger = logging.getLogger(__name__)

# Text-to-Speech rejects inputs over 5000 bytes
MAX_INPUT_BYTES = 4800

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


def chunk_text(text: str, max_bytes: int = MAX_INPUT_BYTES) -> list[str]:
    """Split text into request-sized chunks, preferring sentence boundaries.

    A single sentence longer than the limit is split on whitespace.
    """
    chunks: list[str] = []
    current = ""
    for sentence in _SENTENCE_END.split(text.strip()):
        pieces = [sentence]
        if len(sentence.encode()) > max_bytes:
            pieces = _split_words(sentence, max_bytes)
        for piece in pieces:
            candidate = f"{current} {piece}".strip()
            if len(candidate.encode()) <= max_bytes:
                current = candidate
            else:
                if current:
                    chunks.append(current)
                current = piece
    if current:
        chunks.append(current)
    return chunks


def _split_words(sentence: str, max_bytes: int) -> list[str]:
    pieces, current = [], ""
    for word in sentence.split():
        candidate = f"{current} {word}".strip()
        if current and len(candidate.encode()) > max_bytes:
            pieces.append(current)
            current = word
        else:
            current = candidate
    if current:
        pieces.append(current)
    return pieces


class GoogleCloudSpeechSynthesizer(SpeechSynthesizer):
    """SpeechSynthesizer backed by Google Cloud Text-to-Speech (MP3 output).

    Authentication uses Application Default Credentials. The client is
    created on first use so the adapter can be built without credentials.
    """

    def __init__(
        self,
        config: SpeechConfig,
        file_manager: FileManager,
        client: Optional[texttospeech.TextToSpeechClient] = None,
    ):
        self.config = config
        self.file_manager = file_manager
        self._client = client

    @property
    def client(self) -> texttospeech.TextToSpeechClient:
        if self._client is None:
            self._client = texttospeech.TextToSpeechClient()
        return self._client

    def _synthesize_chunk(self, text: str) -> bytes:
        response = self.client.synthesize_speech(
            input=SynthesisInput(text=text),
            voice=VoiceSelectionParams(
                language_code=self.config.language_code,
                name=self.config.voice_name,
            ),
            audio_config=AudioConfig(
                audio_encoding=texttospeech.AudioEncoding.MP3,
                speaking_rate=self.config.speaking_rate,
                pitch=self.config.pitch,
            ),
        )
        if not response or not response.audio_content:
            raise ValueError("Received empty response from Google Cloud TTS")
        return response.audio_content

    def _synthesize_all(self, chunks: list[str]) -> bytes:
        return b"".join(self._synthesize_chunk(chunk) for chunk in chunks)

    async def synthesize(self, text: str, *, job_id: str) -> AudioRef:
        chunks = chunk_text(text)
        if not chunks:
            raise SynthesisError("Nothing to synthesize: script is empty")

        logger.info(
            f"Synthesizing narration for job {job_id}: {len(text)} chars in {len(chunks)} request(s), "
            f"voice={self.config.voice_name}"
        )
        output_path = self.file_manager.get_audio_path(job_id)
        try:
            audio = await asyncio.to_thread(self._synthesize_all, chunks)
            output_path.write_bytes(audio)
            info = await media_probe.probe(output_path)
        except Exception as e:
            logger.error(f"Error synthesizing speech: {type(e).__name__}: {e}", exc_info=True)
            output_path.unlink(missing_ok=True)
            raise SynthesisError(f"Speech synthesis failed: {e}") from e

        if info.duration_seconds <= 0:
            raise SynthesisError("Synthesized narration has zero duration")

        logger.info(f"Narration ready: {output_path} ({info.duration_seconds:.2f}s)")
        return AudioRef(location=str(output_path), duration_seconds=info.duration_seconds, format="mp3")
