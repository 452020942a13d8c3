"""In-memory job record store.

Single source of truth for job state, shared between the executor (the
only writer of stage transitions) and status readers. Records are
replaced copy-on-write: a write builds a new Job from a private copy and
swaps it in, so a reader can never observe a half-applied transition.
Nothing is persisted; records live for the lifetime of the store.
"""

import asyncio
import logging
import uuid
from typing import Any, Callable, Dict, Mapping, Union

from pydantic import ValidationError as PydanticValidationError

from reelpipe.errors import NotFoundError, ValidationError
from reelpipe.orchestrator.state import can_cancel, check_invariants, check_transition
from reelpipe.schemas.job import Job, JobInput, JobStatus, utcnow

logger = logging.getLogger(__name__)

JobMutator = Callable[[Job], None]


def parse_job_input(data: Union[JobInput, Mapping[str, Any]]) -> JobInput:
    """Validate a generation request.

    Raises:
        ValidationError: If the topic is missing or blank, or any field is
            malformed.
    """
    if isinstance(data, JobInput):
        data = data.model_dump(exclude_unset=True)
    try:
        return JobInput.model_validate(data)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"Invalid generation request: {problems}") from e


class JobStore:
    """Mapping from job id to the latest Job record.

    Writes to one job are serialized by a per-job lock; writes to different
    jobs never contend. get() always returns a deep copy.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def create(self, job_input: Union[JobInput, Mapping[str, Any]]) -> Job:
        """Insert a new queued job and return a snapshot of it.

        Raises:
            ValidationError: If the input is malformed.
        """
        parsed = parse_job_input(job_input)
        job = Job(id=uuid.uuid4().hex, input=parsed)
        check_invariants(job)
        self._jobs[job.id] = job
        self._locks[job.id] = asyncio.Lock()
        logger.debug(f"Created job {job.id} for topic: {parsed.topic[:50]}")
        return job.model_copy(deep=True)

    def get(self, job_id: str) -> Job:
        """Return a snapshot of the job.

        Raises:
            NotFoundError: If the job id is unknown.
        """
        return self._require(job_id).model_copy(deep=True)

    def list_jobs(self) -> list[Job]:
        """Snapshots of every job, newest first."""
        return [job.model_copy(deep=True) for job in reversed(self._jobs.values())]

    async def update(self, job_id: str, mutator: JobMutator) -> Job:
        """Apply a state transition to one job atomically.

        The mutator edits a private copy. If it raises, or the result breaks
        a state invariant, the stored record is left untouched.

        Returns:
            Snapshot of the job after the write.

        Raises:
            NotFoundError: If the job id is unknown.
            InvalidTransitionError: If the result is not a legal successor.
        """
        self._require(job_id)
        async with self._locks[job_id]:
            current = self._jobs[job_id]
            draft = current.model_copy(deep=True)
            mutator(draft)
            check_transition(current, draft)
            self._jobs[job_id] = draft
            return draft.model_copy(deep=True)

    def request_cancel(self, job_id: str) -> bool:
        """Mark a job for cancellation.

        Queued jobs are cancelled on the spot. Running jobs are flagged and
        stop at the next stage boundary.

        Returns:
            False if the job is already terminal, True otherwise.

        Raises:
            NotFoundError: If the job id is unknown.
        """
        current = self._require(job_id)
        if not can_cancel(current.status):
            return False

        draft = current.model_copy(deep=True)
        draft.cancel_requested = True
        if draft.status == JobStatus.QUEUED:
            draft.status = JobStatus.CANCELLED
            draft.ended_at = utcnow()
        check_transition(current, draft)
        self._jobs[job_id] = draft
        logger.info(f"Cancellation requested for job {job_id} (status was {current.status.value})")
        return True

    def is_cancel_requested(self, job_id: str) -> bool:
        return self._require(job_id).cancel_requested

    def _require(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError(job_id)
        return job
