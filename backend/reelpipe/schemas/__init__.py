"""Pydantic schemas for jobs, progress events and media descriptors."""

from reelpipe.schemas.job import (
    Artifacts,
    Job,
    JobError,
    JobInput,
    JobStatus,
    ProgressEvent,
    Stage,
    StageRecord,
    StageStatus,
    VideoStyle,
)
from reelpipe.schemas.media import AudioRef, CaptionCue, ImageRef, TrendingTopic, VideoDescriptor

__all__ = [
    "Artifacts",
    "AudioRef",
    "CaptionCue",
    "ImageRef",
    "Job",
    "JobError",
    "JobInput",
    "JobStatus",
    "ProgressEvent",
    "Stage",
    "StageRecord",
    "StageStatus",
    "TrendingTopic",
    "VideoDescriptor",
    "VideoStyle",
]
