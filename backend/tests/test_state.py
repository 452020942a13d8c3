"""Tests for job status transitions and record invariants."""

import pytest

from reelpipe.errors import InvalidTransitionError
from reelpipe.orchestrator.state import (
    PIPELINE_STAGES,
    can_cancel,
    check_invariants,
    check_transition,
    count_completed,
    is_terminal,
    progress_for,
)
from reelpipe.schemas.job import (
    Job,
    JobError,
    JobInput,
    JobStatus,
    Stage,
    StageRecord,
    StageStatus,
    utcnow,
)
from reelpipe.schemas.media import VideoDescriptor


def _job(**kwargs) -> Job:
    return Job(id="job1", input=JobInput(topic="AI Technology"), **kwargs)


def _video() -> VideoDescriptor:
    return VideoDescriptor(
        video_id="v", location="/tmp/v.mp4", duration_seconds=10, file_size_bytes=10, resolution="1920x1080"
    )


def test_stage_order():
    assert PIPELINE_STAGES == (Stage.SCRIPT, Stage.IMAGES, Stage.AUDIO, Stage.VIDEO)


@pytest.mark.parametrize("completed,expected", [(0, 0), (1, 25), (2, 50), (3, 75), (4, 100), (9, 100)])
def test_progress_for(completed, expected):
    assert progress_for(completed) == expected


def test_terminal_and_cancellable_statuses():
    assert not is_terminal(JobStatus.QUEUED)
    assert not is_terminal(JobStatus.RUNNING)
    for status in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED):
        assert is_terminal(status)
        assert not can_cancel(status)
    assert can_cancel(JobStatus.QUEUED)
    assert can_cancel(JobStatus.RUNNING)


def test_queued_to_running_is_allowed():
    before = _job()
    after = before.model_copy(deep=True)
    after.status = JobStatus.RUNNING
    check_transition(before, after)


def test_queued_cannot_jump_to_completed():
    before = _job()
    after = before.model_copy(deep=True)
    after.status = JobStatus.COMPLETED
    after.artifacts.video = _video()
    with pytest.raises(InvalidTransitionError, match="not allowed"):
        check_transition(before, after)


def test_terminal_job_accepts_no_writes():
    before = _job(status=JobStatus.CANCELLED)
    after = before.model_copy(deep=True)
    after.cancel_requested = True
    with pytest.raises(InvalidTransitionError, match="no further transitions"):
        check_transition(before, after)


def test_unchanged_terminal_job_passes():
    before = _job(status=JobStatus.CANCELLED)
    check_transition(before, before.model_copy(deep=True))


def test_progress_cannot_decrease():
    before = _job(status=JobStatus.RUNNING, progress_percent=50)
    after = before.model_copy(deep=True)
    after.progress_percent = 25
    with pytest.raises(InvalidTransitionError, match="progress cannot decrease"):
        check_transition(before, after)


def test_id_is_immutable():
    before = _job()
    after = before.model_copy(update={"id": "other"}, deep=True)
    with pytest.raises(InvalidTransitionError):
        check_transition(before, after)


def test_completed_requires_video():
    with pytest.raises(InvalidTransitionError, match="video artifact"):
        check_invariants(_job(status=JobStatus.COMPLETED))


def test_video_requires_completed():
    job = _job(status=JobStatus.RUNNING)
    job.artifacts.video = _video()
    with pytest.raises(InvalidTransitionError, match="video artifact"):
        check_invariants(job)


def test_error_only_when_failed():
    job = _job(status=JobStatus.RUNNING, error=JobError(message="boom", stage=Stage.SCRIPT))
    with pytest.raises(InvalidTransitionError, match="error must be present"):
        check_invariants(job)

    with pytest.raises(InvalidTransitionError, match="error must be present"):
        check_invariants(_job(status=JobStatus.FAILED))


def test_stage_records_must_start_in_order():
    job = _job(status=JobStatus.RUNNING)
    job.stage_records[Stage.IMAGES] = StageRecord(
        stage=Stage.IMAGES, status=StageStatus.ACTIVE, started_at=utcnow()
    )
    with pytest.raises(InvalidTransitionError, match="out of order"):
        check_invariants(job)


def test_completed_stage_must_have_started():
    job = _job(status=JobStatus.RUNNING)
    job.stage_records[Stage.SCRIPT] = StageRecord(stage=Stage.SCRIPT, status=StageStatus.COMPLETED)
    with pytest.raises(InvalidTransitionError, match="never started"):
        check_invariants(job)


def test_count_completed():
    job = _job(status=JobStatus.RUNNING)
    now = utcnow()
    job.stage_records[Stage.SCRIPT] = StageRecord(stage=Stage.SCRIPT, status=StageStatus.COMPLETED, started_at=now)
    job.stage_records[Stage.IMAGES] = StageRecord(stage=Stage.IMAGES, status=StageStatus.ACTIVE, started_at=now)
    assert count_completed(job) == 1
