"""Shared fixtures: deterministic fake collaborators and wired-up core objects.

Usage:
    cd <repo-root> && python -m pytest backend/tests -v
"""

import asyncio
from typing import Optional

import pytest
import pytest_asyncio

from reelpipe.config import PipelineConfig
from reelpipe.orchestrator.events import ProgressBus
from reelpipe.orchestrator.pipeline import PipelineExecutor
from reelpipe.orchestrator.service import JobService
from reelpipe.orchestrator.store import JobStore
from reelpipe.schemas.job import VideoStyle
from reelpipe.schemas.media import AudioRef, ImageRef, VideoDescriptor
from reelpipe.services.base import (
    Collaborators,
    ImageProvider,
    ScriptGenerator,
    SpeechSynthesizer,
    VideoEncoder,
)

FAKE_SCRIPT = "Artificial intelligence is changing the newsroom. Here is how. Stay tuned!"
FAKE_AUDIO_SECONDS = 42.0


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class Gate:
    """Lets a test hold a fake collaborator call open until released."""

    def __init__(self):
        self.entered = asyncio.Event()
        self.released = asyncio.Event()

    async def pass_through(self):
        self.entered.set()
        await self.released.wait()

    def release(self):
        self.released.set()


class FakeScriptGenerator(ScriptGenerator):
    def __init__(self, script: str = FAKE_SCRIPT, error: Optional[Exception] = None):
        self.script = script
        self.error = error
        self.gate: Optional[Gate] = None
        self.calls: list[tuple[str, VideoStyle, int]] = []

    async def generate(self, topic, style, duration_seconds):
        self.calls.append((topic, style, duration_seconds))
        if self.gate is not None:
            await self.gate.pass_through()
        if self.error is not None:
            raise self.error
        return self.script


class FakeImageProvider(ImageProvider):
    def __init__(self, error: Optional[Exception] = None, available: Optional[int] = None):
        self.error = error
        self.available = available
        self.gate: Optional[Gate] = None
        self.calls: list[tuple[str, int]] = []

    async def search(self, topic, count, *, job_id):
        self.calls.append((topic, count))
        if self.gate is not None:
            await self.gate.pass_through()
        if self.error is not None:
            raise self.error
        n = count if self.available is None else min(count, self.available)
        return [
            ImageRef(location=f"/fake/{job_id}/image_{i:03d}.jpg", width=1920, height=1080, source="fake")
            for i in range(n)
        ]


class FakeSpeechSynthesizer(SpeechSynthesizer):
    def __init__(self, error: Optional[Exception] = None, duration: float = FAKE_AUDIO_SECONDS):
        self.error = error
        self.duration = duration
        self.gate: Optional[Gate] = None
        self.calls: list[str] = []

    async def synthesize(self, text, *, job_id):
        self.calls.append(text)
        if self.gate is not None:
            await self.gate.pass_through()
        if self.error is not None:
            raise self.error
        return AudioRef(location=f"/fake/{job_id}/narration.mp3", duration_seconds=self.duration)


class FakeVideoEncoder(VideoEncoder):
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.gate: Optional[Gate] = None
        self.calls: list[dict] = []

    async def assemble(self, script, images, audio, *, captions, job_id, style):
        self.calls.append(
            {"script": script, "images": images, "audio": audio, "captions": captions, "style": style}
        )
        if self.gate is not None:
            await self.gate.pass_through()
        if self.error is not None:
            raise self.error
        return VideoDescriptor(
            video_id="fakevideo",
            location=f"/fake/{job_id}/output/video_fakevideo.mp4",
            duration_seconds=audio.duration_seconds,
            file_size_bytes=1_048_576,
            resolution="1920x1080",
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fakes() -> Collaborators:
    return Collaborators(
        script_generator=FakeScriptGenerator(),
        image_provider=FakeImageProvider(),
        speech_synthesizer=FakeSpeechSynthesizer(),
        video_encoder=FakeVideoEncoder(),
    )


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    return PipelineConfig()


@pytest.fixture
def store() -> JobStore:
    return JobStore()


@pytest.fixture
def bus() -> ProgressBus:
    return ProgressBus()


@pytest.fixture
def executor(store, fakes, bus, pipeline_config) -> PipelineExecutor:
    return PipelineExecutor(store, fakes, bus, pipeline_config)


@pytest_asyncio.fixture
async def service(fakes, pipeline_config):
    svc = JobService(fakes, config=pipeline_config)
    yield svc
    await svc.shutdown()


@pytest.fixture
def valid_request() -> dict:
    return {
        "topic": "AI Technology",
        "duration_seconds": 60,
        "style": "news",
        "include_captions": True,
    }
