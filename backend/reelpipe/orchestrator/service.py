"""Job registry and status surface.

JobService is what callers (the CLI, or any transport layered on top)
talk to: it validates and records new jobs, starts one supervised asyncio
task per job, and answers status, cancellation and subscription requests.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Union

from reelpipe.config import PipelineConfig, Settings
from reelpipe.orchestrator.events import ProgressBus, ProgressListener, Subscription
from reelpipe.orchestrator.pipeline import PipelineExecutor
from reelpipe.orchestrator.store import JobStore, parse_job_input
from reelpipe.schemas.job import Job, JobInput, JobStatus, ProgressEvent
from reelpipe.services.base import Collaborators

logger = logging.getLogger(__name__)


class JobService:
    """Entry point for submitting and observing generation jobs.

    Must be used from inside a running event loop: submit() schedules the
    job's task on the current loop.
    """

    def __init__(
        self,
        collaborators: Collaborators,
        config: Optional[PipelineConfig] = None,
        store: Optional[JobStore] = None,
        bus: Optional[ProgressBus] = None,
    ):
        self.collaborators = collaborators
        self.config = config if config is not None else PipelineConfig()
        self.store = store if store is not None else JobStore()
        self.bus = bus if bus is not None else ProgressBus(queue_size=self.config.progress_queue_size)
        self.executor = PipelineExecutor(self.store, collaborators, self.bus, self.config)
        self._tasks: Dict[str, asyncio.Task] = {}

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "JobService":
        """Build a service wired to the real adapters."""
        from reelpipe.services.factory import build_collaborators

        return cls(build_collaborators(app_settings), config=app_settings.pipeline)

    def submit(self, job_input: Union[JobInput, Mapping[str, Any]]) -> str:
        """Validate a request, record it as queued, and start its task.

        Returns:
            The new job id.

        Raises:
            ValidationError: If the request is malformed. No job is created.
            RuntimeError: If called outside a running event loop. No job is
                created.
        """
        parsed = parse_job_input(job_input).with_defaults(
            duration_seconds=self.config.default_duration,
            style=self.config.default_style,
        )
        loop = asyncio.get_running_loop()
        job = self.store.create(parsed)

        task = loop.create_task(
            self._run_background(job.id), name=f"reelpipe-job-{job.id}"
        )
        self._tasks[job.id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job.id, None))

        logger.info(f"Submitted job {job.id}: {parsed.topic[:50]!r}")
        return job.id

    async def _run_background(self, job_id: str) -> None:
        """Run the executor for one job; nothing escapes except task cancellation."""
        try:
            await self.executor.run(job_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Background pipeline failed for {job_id}: {type(e).__name__}: {str(e)}")

    def get_status(self, job_id: str) -> Job:
        """Snapshot of a job. Raises NotFoundError for unknown ids."""
        return self.store.get(job_id)

    def list_jobs(self) -> list[Job]:
        return self.store.list_jobs()

    def request_cancel(self, job_id: str) -> bool:
        """Ask a job to stop.

        A queued job is cancelled immediately. A running job stops at its
        next stage boundary; an in-flight collaborator call is allowed to
        finish and its result is discarded.

        Returns:
            False if the job had already finished, True otherwise.

        Raises:
            NotFoundError: If the job id is unknown.
        """
        was_queued = self.store.get(job_id).status == JobStatus.QUEUED
        accepted = self.store.request_cancel(job_id)
        if accepted and was_queued:
            self.bus.publish(ProgressEvent.from_job(self.store.get(job_id), "Job cancelled"))
        return accepted

    def subscribe(self, job_id: Optional[str] = None) -> Subscription:
        """Stream progress events for one job, or all jobs when job_id is None.

        A job-scoped subscription starts with an event describing the job's
        current state, so it also terminates for jobs that already finished.

        Raises:
            NotFoundError: If job_id is given but unknown.
        """
        if job_id is None:
            return self.bus.subscribe()
        job = self.store.get(job_id)
        current = ProgressEvent.from_job(job, f"Job is {job.status.value}").model_copy(
            update={"sequence": self.bus.last_sequence(job_id)}
        )
        return self.bus.subscribe(job_id, initial=current)

    def add_listener(self, listener: ProgressListener) -> Callable[[], None]:
        return self.bus.add_listener(listener)

    async def wait(self, job_id: str, timeout: Optional[float] = None) -> Job:
        """Wait for a job's task to finish and return the final snapshot.

        If the timeout expires first, the current (non-terminal) snapshot is
        returned.

        Raises:
            NotFoundError: If the job id is unknown.
        """
        self.store.get(job_id)
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait({task}, timeout=timeout)
        return self.store.get(job_id)

    async def run(self, job_input: Union[JobInput, Mapping[str, Any]]) -> Job:
        """Submit a job and wait for it to finish."""
        return await self.wait(self.submit(job_input))

    async def shutdown(self) -> None:
        """Cancel outstanding job tasks, then close subscriptions and adapter clients."""
        tasks = list(self._tasks.values())
        if tasks:
            logger.info(f"Shutting down with {len(tasks)} job(s) still running")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.bus.close()
        await self.collaborators.aclose()
