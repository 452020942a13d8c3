"""Pydantic descriptors for the media produced by pipeline collaborators.

These are the hand-off types between stages: the image provider returns
ImageRef entries, the speech synthesizer an AudioRef, the encoder a
VideoDescriptor. Locations are local paths or URLs; the executor never
opens them.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ImageRef(BaseModel):
    """A single slide image collected for a job."""

    location: str = Field(description="Local path or URL of the image")
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    source: str = Field(default="unknown", description="Provider name, e.g. 'pexels' or 'placeholder'")
    source_url: Optional[str] = None
    attribution: Optional[str] = None


class AudioRef(BaseModel):
    """Narration track handle.

    duration_seconds is the authoritative clock for slide pacing and the
    length of the final video.
    """

    location: str
    duration_seconds: float = Field(gt=0)
    format: str = "mp3"


class VideoDescriptor(BaseModel):
    """Final encoded video."""

    video_id: str
    location: str
    duration_seconds: float = Field(ge=0)
    file_size_bytes: int = Field(ge=0)
    resolution: str = Field(description="WIDTHxHEIGHT")
    thumbnail_location: Optional[str] = None
    captions_location: Optional[str] = None


class CaptionCue(BaseModel):
    """One timed caption line."""

    index: int = Field(ge=1)
    text: str
    start_seconds: float = Field(ge=0)
    end_seconds: float = Field(ge=0)


class TrendingTopic(BaseModel):
    """Summary of a Reddit post usable as a video topic."""

    id: str
    title: str
    subreddit: str
    score: int = 0
    num_comments: int = 0
    author: Optional[str] = None
    url: Optional[str] = None
    permalink: Optional[str] = None
    created_at: Optional[datetime] = None
    selftext: str = ""
    is_video: bool = False
    flair: Optional[str] = None
