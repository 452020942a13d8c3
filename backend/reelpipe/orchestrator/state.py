"""State machine constants and transition rules for the job executor.

Defines the ordered stage sequence, the allowed job status transitions and
the invariants every stored job must satisfy. The store calls
check_transition() on every write so no caller can persist an
inconsistent record.
"""

from typing import Dict, FrozenSet

from reelpipe.errors import InvalidTransitionError
from reelpipe.schemas.job import Job, JobStatus, Stage, StageStatus

# Stages in execution order
PIPELINE_STAGES = (Stage.SCRIPT, Stage.IMAGES, Stage.AUDIO, Stage.VIDEO)

# Status messages published when a stage becomes active
STAGE_MESSAGES = {
    Stage.SCRIPT: "Generating script...",
    Stage.IMAGES: "Collecting images...",
    Stage.AUDIO: "Generating voiceover...",
    Stage.VIDEO: "Assembling final video...",
}

TERMINAL_STATUSES: FrozenSet[JobStatus] = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}
)

# Allowed status transitions (same-status writes are always allowed for
# non-terminal jobs)
STATUS_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.RUNNING, JobStatus.CANCELLED, JobStatus.FAILED}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


def is_terminal(status: JobStatus) -> bool:
    """Check if a job status is terminal."""
    return status in TERMINAL_STATUSES


def can_cancel(status: JobStatus) -> bool:
    """Check if cancellation may still be requested for a job."""
    return status in (JobStatus.QUEUED, JobStatus.RUNNING)


def progress_for(completed_stages: int) -> int:
    """Progress percent after the given number of completed stages.

    Examples:
        >>> progress_for(1)
        25
        >>> progress_for(4)
        100
    """
    completed_stages = max(0, min(completed_stages, len(PIPELINE_STAGES)))
    return round(100 * completed_stages / len(PIPELINE_STAGES))


def count_completed(job: Job) -> int:
    return sum(
        1 for record in job.stage_records.values() if record.status == StageStatus.COMPLETED
    )


def check_transition(before: Job, after: Job) -> None:
    """Validate that ``after`` is a legal successor of ``before``.

    Raises:
        InvalidTransitionError: If the write would change a terminal job,
            skip a status transition, decrease progress, or leave the
            artifacts/error inconsistent with the status.
    """
    if before.id != after.id:
        raise InvalidTransitionError("Job id is immutable")

    if is_terminal(before.status):
        if after != before:
            raise InvalidTransitionError(
                f"Job {before.id} is {before.status.value}; no further transitions allowed"
            )
        return

    if after.status != before.status and after.status not in STATUS_TRANSITIONS[before.status]:
        raise InvalidTransitionError(
            f"Job {before.id}: {before.status.value} -> {after.status.value} is not allowed"
        )

    if after.progress_percent < before.progress_percent:
        raise InvalidTransitionError(
            f"Job {before.id}: progress cannot decrease "
            f"({before.progress_percent} -> {after.progress_percent})"
        )

    check_invariants(after)


def check_invariants(job: Job) -> None:
    """Validate the invariants that hold for any stored job."""
    started = tuple(job.stage_records)
    if started != PIPELINE_STAGES[: len(started)]:
        raise InvalidTransitionError(
            f"Job {job.id}: stages started out of order: {[s.value for s in started]}"
        )
    for stage, record in job.stage_records.items():
        if record.stage != stage:
            raise InvalidTransitionError(f"Job {job.id}: invalid stage record for {stage.value}")
        if record.status != StageStatus.PENDING and record.started_at is None:
            raise InvalidTransitionError(
                f"Job {job.id}: stage {stage.value} is {record.status.value} but never started"
            )

    has_video = job.artifacts.video is not None
    if has_video != (job.status == JobStatus.COMPLETED):
        raise InvalidTransitionError(
            f"Job {job.id}: video artifact must be present exactly when completed"
        )

    if (job.error is not None) != (job.status == JobStatus.FAILED):
        raise InvalidTransitionError(
            f"Job {job.id}: error must be present exactly when failed"
        )
