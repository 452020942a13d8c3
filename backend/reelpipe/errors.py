"""Exception hierarchy for the orchestration core and its collaborators.

Stage errors carry the stage they occurred in so a failed job can report
where it stopped. Collaborator adapters raise the subclass matching their
stage; the executor wraps anything else.
"""

from typing import Optional

from reelpipe.schemas.job import Stage


class ReelPipeError(Exception):
    """Base class for all reelpipe errors."""


class ValidationError(ReelPipeError):
    """Raised when a generation request is malformed. No job is created."""


class NotFoundError(ReelPipeError):
    """Raised when a job id is unknown to the store."""

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class InvalidTransitionError(ReelPipeError):
    """Raised when a write would break a job state invariant."""


class StageError(ReelPipeError):
    """A collaborator failure, tagged with the pipeline stage."""

    stage: Optional[Stage] = None

    def __init__(self, message: str, *, stage: Optional[Stage] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class GenerationError(StageError):
    stage = Stage.SCRIPT


class ProviderError(StageError):
    stage = Stage.IMAGES


class SynthesisError(StageError):
    stage = Stage.AUDIO


class EncodingError(StageError):
    stage = Stage.VIDEO


class StageTimeoutError(StageError):
    """Raised when a stage exceeds the configured per-stage timeout."""


STAGE_ERRORS: dict[Stage, type[StageError]] = {
    Stage.SCRIPT: GenerationError,
    Stage.IMAGES: ProviderError,
    Stage.AUDIO: SynthesisError,
    Stage.VIDEO: EncodingError,
}


def wrap_stage_error(stage: Stage, exc: BaseException) -> StageError:
    """Convert an arbitrary collaborator exception into the stage's error type."""
    if isinstance(exc, StageError) and exc.stage in (None, stage):
        exc.stage = stage
        return exc
    error_cls = STAGE_ERRORS.get(stage, StageError)
    message = str(exc) if isinstance(exc, StageError) else f"{type(exc).__name__}: {exc}"
    wrapped = error_cls(message, stage=stage)
    wrapped.__cause__ = exc
    return wrapped
