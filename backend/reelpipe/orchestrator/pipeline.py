"""Pipeline executor: drives one job through script, images, audio and video.

Coordinates a single job with:
- Ordered stage transitions written through the job store
- Cooperative cancellation at every stage boundary
- Per-stage timing and logging
- Failure containment (no exception ever escapes a job's task)
- Progress events for observers
- Optional per-stage timeout and concurrent image/audio collection
"""

import asyncio
import logging
import math
import time
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Optional

from reelpipe.config import PipelineConfig
from reelpipe.errors import (
    ProviderError,
    StageError,
    StageTimeoutError,
    SynthesisError,
    wrap_stage_error,
)
from reelpipe.orchestrator.events import ProgressBus
from reelpipe.orchestrator.state import (
    PIPELINE_STAGES,
    STAGE_MESSAGES,
    count_completed,
    progress_for,
)
from reelpipe.orchestrator.store import JobStore
from reelpipe.schemas.job import (
    Job,
    JobError,
    JobStatus,
    ProgressEvent,
    Stage,
    StageRecord,
    StageStatus,
    utcnow,
)
from reelpipe.schemas.media import AudioRef, ImageRef
from reelpipe.services.base import Collaborators

logger = logging.getLogger(__name__)


class JobCancelled(Exception):
    """Raised inside the executor when a cancellation request is observed.

    ``stage`` is the stage whose result was discarded, or None when the
    request was seen at a boundary between stages.
    """

    def __init__(self, stage: Optional[Stage] = None):
        super().__init__("Job cancelled by user")
        self.stage = stage


def image_count(duration_seconds: int, seconds_per_image: int) -> int:
    """Number of slides for a target duration (at least one).

    Examples:
        >>> image_count(60, 8)
        8
        >>> image_count(5, 8)
        1
    """
    return max(1, math.ceil(duration_seconds / seconds_per_image))


def _close_record(record: StageRecord, status: StageStatus) -> None:
    record.status = status
    record.finished_at = utcnow()
    if record.started_at is not None:
        record.elapsed_seconds = (record.finished_at - record.started_at).total_seconds()


class PipelineExecutor:
    """Runs jobs from the store through the four pipeline stages.

    One executor serves any number of jobs; each job is driven by its own
    call to run(), normally inside a dedicated asyncio task.
    """

    def __init__(
        self,
        store: JobStore,
        collaborators: Collaborators,
        bus: Optional[ProgressBus] = None,
        config: Optional[PipelineConfig] = None,
    ):
        self.store = store
        self.collaborators = collaborators
        self.bus = bus if bus is not None else ProgressBus()
        self.config = config if config is not None else PipelineConfig()

    async def run(self, job_id: str) -> Job:
        """Execute a job to a terminal state.

        Supervised: stage failures and unexpected errors alike end with the
        job marked failed. Task cancellation marks the job cancelled and is
        re-raised.

        Returns:
            Final snapshot of the job.

        Raises:
            NotFoundError: If the job id is unknown.
        """
        self.store.get(job_id)
        try:
            await self._execute(job_id)
        except asyncio.CancelledError:
            logger.warning(f"Job {job_id}: task cancelled, marking job cancelled")
            await self._finish_cancelled(job_id, None)
            raise
        except Exception as e:
            logger.exception(f"Job {job_id}: unexpected executor error: {type(e).__name__}: {e}")
            await self._fail_unexpected(job_id, e)
        return self.store.get(job_id)

    async def _execute(self, job_id: str) -> None:
        try:
            job = await self.store.update(job_id, _mark_running)
        except JobCancelled:
            status = self.store.get(job_id).status
            logger.info(f"Job {job_id} is {status.value}; not starting")
            return

        duration = job.input.duration_seconds or self.config.default_duration
        style = job.input.style or self.config.default_style
        logger.info(
            f"Starting pipeline for job {job_id}: topic={job.input.topic[:50]!r}, "
            f"style={style.value}, duration={duration}s"
        )

        step_log: Dict[str, float] = {}
        pipeline_start = time.monotonic()

        try:
            # Step 1: Script
            if job.input.custom_script:
                script = await self._run_stage(
                    job_id, Stage.SCRIPT, lambda: self._use_custom_script(job_id, job.input.custom_script)
                )
            else:
                script = await self._run_stage(
                    job_id,
                    Stage.SCRIPT,
                    lambda: self.collaborators.script_generator.generate(job.input.topic, style, duration),
                )
            step_log["script"] = await self._complete_stage(
                job_id, Stage.SCRIPT, lambda j: setattr(j.artifacts, "script", script)
            )

            # Steps 2 and 3: Images and narration
            count = image_count(duration, self.config.seconds_per_image)
            images_call = partial(self._collect_images, job.input.topic, count, job_id)
            audio_call = partial(self._synthesize, script, job_id)
            if self.config.parallel_media:
                images, audio = await self._run_media_concurrently(
                    job_id, images_call, audio_call, step_log
                )
            else:
                images = await self._run_stage(job_id, Stage.IMAGES, images_call)
                step_log["images"] = await self._complete_stage(
                    job_id, Stage.IMAGES, lambda j: setattr(j.artifacts, "images", images)
                )
                audio = await self._run_stage(job_id, Stage.AUDIO, audio_call)
                step_log["audio"] = await self._complete_stage(
                    job_id, Stage.AUDIO, lambda j: setattr(j.artifacts, "audio", audio)
                )

            # Step 4: Video
            video = await self._run_stage(
                job_id,
                Stage.VIDEO,
                lambda: self.collaborators.video_encoder.assemble(
                    script,
                    images,
                    audio,
                    captions=job.input.include_captions,
                    job_id=job_id,
                    style=style,
                ),
            )

            def finish(j: Job) -> None:
                now = utcnow()
                j.artifacts.video = video
                j.status = JobStatus.COMPLETED
                j.current_stage = Stage.DONE
                j.completed_at = now
                j.ended_at = now

            step_log["video"] = await self._complete_stage(
                job_id, Stage.VIDEO, finish, message="Video generation completed"
            )

            total = time.monotonic() - pipeline_start
            timings = ", ".join(f"{name}={secs:.2f}s" for name, secs in step_log.items())
            logger.info(f"Pipeline completed for job {job_id} in {total:.2f}s ({timings})")

        except JobCancelled as c:
            await self._finish_cancelled(job_id, c.stage)

        except StageError as e:
            await self._finish_failed(job_id, e)

    async def _run_stage(self, job_id: str, stage: Stage, call: Callable[[], Awaitable[Any]]) -> Any:
        """Check for cancellation, mark the stage active, and await its call."""
        self._check_cancelled(job_id)
        await self._begin_stage(job_id, stage)
        return await self._call(job_id, stage, call)

    async def _call(self, job_id: str, stage: Stage, call: Callable[[], Awaitable[Any]]) -> Any:
        try:
            result = await self._with_timeout(stage, call())
        except Exception as e:
            if self.store.is_cancel_requested(job_id):
                logger.info(f"Job {job_id}: {stage.value} failed after cancellation was requested")
                raise JobCancelled(stage) from e
            raise wrap_stage_error(stage, e)

        if self.store.is_cancel_requested(job_id):
            logger.info(f"Job {job_id}: discarding {stage.value} result, cancellation requested")
            raise JobCancelled(stage)
        return result

    async def _with_timeout(self, stage: Stage, awaitable: Awaitable[Any]) -> Any:
        timeout = self.config.stage_timeout_seconds
        if timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError:
            raise StageTimeoutError(
                f"{stage.value} stage timed out after {timeout:g}s", stage=stage
            ) from None

    async def _run_media_concurrently(
        self,
        job_id: str,
        images_call: Callable[[], Awaitable[list[ImageRef]]],
        audio_call: Callable[[], Awaitable[AudioRef]],
        step_log: Dict[str, float],
    ) -> tuple[list[ImageRef], AudioRef]:
        """Collect images and narration at the same time.

        Both stage records are opened before either call starts. Successful
        results are recorded even when the other stage fails; the earlier
        failing stage in pipeline order is the one reported.
        """
        self._check_cancelled(job_id)
        await self._begin_stage(job_id, Stage.IMAGES)
        await self._begin_stage(job_id, Stage.AUDIO)

        results = await asyncio.gather(
            self._call(job_id, Stage.IMAGES, images_call),
            self._call(job_id, Stage.AUDIO, audio_call),
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
        for result in results:
            if isinstance(result, JobCancelled):
                raise result

        images, audio = results
        first_failure: Optional[BaseException] = None
        if isinstance(images, Exception):
            first_failure = images
        else:
            step_log["images"] = await self._complete_stage(
                job_id, Stage.IMAGES, lambda j: setattr(j.artifacts, "images", images)
            )
        if isinstance(audio, Exception):
            first_failure = first_failure or audio
        else:
            step_log["audio"] = await self._complete_stage(
                job_id, Stage.AUDIO, lambda j: setattr(j.artifacts, "audio", audio)
            )

        if first_failure is not None:
            raise first_failure
        return images, audio

    async def _use_custom_script(self, job_id: str, script: str) -> str:
        logger.info(f"Job {job_id}: using custom script ({len(script.split())} words)")
        return script

    async def _collect_images(self, topic: str, count: int, job_id: str) -> list[ImageRef]:
        logger.info(f"Job {job_id}: requesting {count} images")
        images = await self.collaborators.image_provider.search(topic, count, job_id=job_id)
        if not images:
            raise ProviderError(f"No images found for topic: {topic}")
        if len(images) < count:
            logger.warning(f"Job {job_id}: only {len(images)} of {count} images available")
        return list(images)

    async def _synthesize(self, script: str, job_id: str) -> AudioRef:
        audio = await self.collaborators.speech_synthesizer.synthesize(script, job_id=job_id)
        if audio.duration_seconds <= 0:
            raise SynthesisError("Narration audio has no duration")
        return audio

    def _check_cancelled(self, job_id: str) -> None:
        """Raise JobCancelled if cancellation was requested."""
        if self.store.is_cancel_requested(job_id):
            raise JobCancelled()

    async def _begin_stage(self, job_id: str, stage: Stage) -> None:
        def mutate(job: Job) -> None:
            job.current_stage = stage
            job.stage_records[stage] = StageRecord(
                stage=stage, status=StageStatus.ACTIVE, started_at=utcnow()
            )

        job = await self.store.update(job_id, mutate)
        logger.info(f"Job {job_id}: starting {stage.value} stage")
        self._publish(job, STAGE_MESSAGES[stage])

    async def _complete_stage(
        self,
        job_id: str,
        stage: Stage,
        apply: Callable[[Job], None],
        message: Optional[str] = None,
    ) -> float:
        """Store a stage result and mark the stage completed in one write.

        Returns:
            Elapsed seconds for the stage.
        """

        def mutate(job: Job) -> None:
            apply(job)
            _close_record(job.stage_records[stage], StageStatus.COMPLETED)
            job.progress_percent = progress_for(count_completed(job))

        job = await self.store.update(job_id, mutate)
        elapsed = job.stage_records[stage].elapsed_seconds or 0.0
        logger.info(f"Job {job_id}: {stage.value} stage completed in {elapsed:.2f}s")
        self._publish(job, message or f"{stage.value.capitalize()} stage completed")
        return elapsed

    async def _finish_failed(self, job_id: str, error: StageError) -> None:
        stage = error.stage or Stage.SCRIPT

        def mutate(job: Job) -> None:
            for record in job.stage_records.values():
                if record.status == StageStatus.ACTIVE:
                    _close_record(
                        record,
                        StageStatus.FAILED if record.stage == stage else StageStatus.CANCELLED,
                    )
            job.status = JobStatus.FAILED
            job.current_stage = Stage.ERROR
            job.error = JobError(message=str(error), stage=stage, error_type=type(error).__name__)
            job.ended_at = utcnow()

        job = await self.store.update(job_id, mutate)
        logger.error(f"Job {job_id} failed at {stage.value} stage: {type(error).__name__}: {error}")
        self._publish(job, f"Failed during {stage.value} stage")

    async def _finish_cancelled(self, job_id: str, stage: Optional[Stage]) -> None:
        def mutate(job: Job) -> None:
            if job.status not in (JobStatus.QUEUED, JobStatus.RUNNING):
                raise JobCancelled(stage)
            for record in job.stage_records.values():
                if record.status == StageStatus.ACTIVE:
                    _close_record(record, StageStatus.CANCELLED)
            job.cancel_requested = True
            job.status = JobStatus.CANCELLED
            job.ended_at = utcnow()

        try:
            job = await self.store.update(job_id, mutate)
        except JobCancelled:
            return
        where = f"during {stage.value} stage" if stage else "at stage boundary"
        logger.info(f"Job {job_id} cancelled {where}")
        self._publish(job, "Job cancelled")

    async def _fail_unexpected(self, job_id: str, exc: Exception) -> None:
        """Convert an error that escaped the stage logic into a failed job."""
        job = self.store.get(job_id)
        if job.is_terminal:
            return
        stage = job.current_stage if job.current_stage in PIPELINE_STAGES else Stage.SCRIPT
        try:
            await self._finish_failed(job_id, wrap_stage_error(stage, exc))
        except Exception:
            logger.exception(f"Job {job_id}: could not record failure")

    def _publish(self, job: Job, message: str) -> None:
        self.bus.publish(ProgressEvent.from_job(job, message))


def _mark_running(job: Job) -> None:
    if job.status != JobStatus.QUEUED:
        raise JobCancelled()
    job.status = JobStatus.RUNNING
    job.started_at = utcnow()
