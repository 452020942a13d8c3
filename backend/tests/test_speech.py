"""Tests for narration chunking and the Text-to-Speech adapter.

The Text-to-Speech client and ffprobe are replaced with stand-ins.
"""

from types import SimpleNamespace

import pytest

from reelpipe.config import SpeechConfig
from reelpipe.errors import SynthesisError
from reelpipe.services import media_probe
from reelpipe.services.file_manager import FileManager
from reelpipe.services.media_probe import MediaInfo
from reelpipe.services.speech import GoogleCloudSpeechSynthesizer, chunk_text


class RecordingTTSClient:
    def __init__(self, fail=False):
        self.fail = fail
        self.requests = []

    def synthesize_speech(self, input, voice, audio_config):
        self.requests.append((input.text, voice.name))
        if self.fail:
            raise RuntimeError("quota exceeded")
        return SimpleNamespace(audio_content=f"<{len(self.requests)}>".encode())


def test_short_text_is_one_chunk():
    assert chunk_text("  One sentence. Another one!  ") == ["One sentence. Another one!"]


def test_chunks_break_on_sentences():
    text = "Alpha beta. Gamma delta. Epsilon zeta."
    assert chunk_text(text, max_bytes=25) == ["Alpha beta. Gamma delta.", "Epsilon zeta."]


def test_overlong_sentence_splits_on_words():
    chunks = chunk_text("one two three four five six", max_bytes=10)
    assert chunks == ["one two", "three four", "five six"]
    assert all(len(c.encode()) <= 10 for c in chunks)


def test_empty_text_has_no_chunks():
    assert chunk_text("   ") == []


@pytest.fixture
def fake_probe(monkeypatch):
    async def probe(path):
        return MediaInfo(duration_seconds=12.5, size_bytes=path.stat().st_size, has_audio=True)

    monkeypatch.setattr(media_probe, "probe", probe)


@pytest.mark.asyncio
async def test_synthesize_writes_joined_audio(tmp_path, fake_probe):
    client = RecordingTTSClient()
    synthesizer = GoogleCloudSpeechSynthesizer(
        SpeechConfig(voice_name="en-GB-Neural2-B"), FileManager(tmp_path), client=client
    )

    audio = await synthesizer.synthesize("Hello listeners. Welcome back.", job_id="job1")

    assert audio.duration_seconds == 12.5
    assert audio.format == "mp3"
    assert audio.location.endswith("narration.mp3")
    with open(audio.location, "rb") as f:
        assert f.read() == b"<1>"
    assert client.requests == [("Hello listeners. Welcome back.", "en-GB-Neural2-B")]


@pytest.mark.asyncio
async def test_client_failure_becomes_synthesis_error(tmp_path, fake_probe):
    file_manager = FileManager(tmp_path)
    synthesizer = GoogleCloudSpeechSynthesizer(
        SpeechConfig(), file_manager, client=RecordingTTSClient(fail=True)
    )

    with pytest.raises(SynthesisError, match="quota exceeded"):
        await synthesizer.synthesize("Hello.", job_id="job1")
    assert not file_manager.get_audio_path("job1").exists()


@pytest.mark.asyncio
async def test_empty_script_is_rejected(tmp_path):
    synthesizer = GoogleCloudSpeechSynthesizer(SpeechConfig(), FileManager(tmp_path), client=RecordingTTSClient())
    with pytest.raises(SynthesisError, match="empty"):
        await synthesizer.synthesize("  ", job_id="job1")
