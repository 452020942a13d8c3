"""Pydantic models for generation jobs and their progress events."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from reelpipe.schemas.media import AudioRef, ImageRef, VideoDescriptor


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Stage(str, Enum):
    """Pipeline stage identifiers.

    DONE and ERROR only ever appear as a job's current_stage once it has
    finished; they never get a stage record.
    """

    SCRIPT = "script"
    IMAGES = "images"
    AUDIO = "audio"
    VIDEO = "video"
    DONE = "done"
    ERROR = "error"


class StageStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class VideoStyle(str, Enum):
    NEWS = "news"
    SOCIAL = "social"
    EDUCATIONAL = "educational"
    ENTERTAINMENT = "entertainment"
    DOCUMENTARY = "documentary"


class JobInput(BaseModel):
    """A generation request as submitted by a caller.

    duration_seconds and style may be left unset; the job service fills
    them from configuration before the job is created.
    """

    topic: str = Field(min_length=1)
    duration_seconds: Optional[int] = Field(default=None, gt=0)
    style: Optional[VideoStyle] = None
    include_captions: bool = True
    custom_script: Optional[str] = None

    @field_validator("topic", mode="before")
    @classmethod
    def strip_topic(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("custom_script", mode="before")
    @classmethod
    def blank_script_is_absent(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def with_defaults(self, duration_seconds: int, style: VideoStyle) -> "JobInput":
        """Return a copy with unset duration/style filled in."""
        return self.model_copy(
            update={
                "duration_seconds": self.duration_seconds or duration_seconds,
                "style": self.style or style,
            }
        )


class StageRecord(BaseModel):
    stage: Stage
    status: StageStatus
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    elapsed_seconds: Optional[float] = None


class Artifacts(BaseModel):
    """Intermediate and final outputs, filled in as stages complete."""

    script: Optional[str] = None
    images: list[ImageRef] = Field(default_factory=list)
    audio: Optional[AudioRef] = None
    video: Optional[VideoDescriptor] = None


class JobError(BaseModel):
    message: str
    stage: Stage
    error_type: str = "Exception"


class Job(BaseModel):
    """Full state of one generation job."""

    id: str
    input: JobInput
    status: JobStatus = JobStatus.QUEUED
    current_stage: Optional[Stage] = None
    stage_records: dict[Stage, StageRecord] = Field(default_factory=dict)
    progress_percent: int = Field(default=0, ge=0, le=100)
    artifacts: Artifacts = Field(default_factory=Artifacts)
    error: Optional[JobError] = None
    cancel_requested: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class ProgressEvent(BaseModel):
    """Snapshot of a job's progress published to observers.

    sequence is assigned by the progress bus and increases strictly per job.
    """

    job_id: str
    sequence: int = 0
    status: JobStatus
    current_stage: Optional[Stage] = None
    progress_percent: int = 0
    message: str = ""
    error_message: Optional[str] = None
    error_stage: Optional[Stage] = None
    timestamp: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_job(cls, job: Job, message: str = "") -> "ProgressEvent":
        return cls(
            job_id=job.id,
            status=job.status,
            current_stage=job.current_stage,
            progress_percent=job.progress_percent,
            message=message,
            error_message=job.error.message if job.error else None,
            error_stage=job.error.stage if job.error else None,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)
