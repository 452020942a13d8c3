"""Job orchestration: record store, pipeline executor, progress bus and service."""

from reelpipe.orchestrator.events import ProgressBus, Subscription
from reelpipe.orchestrator.pipeline import PipelineExecutor
from reelpipe.orchestrator.service import JobService
from reelpipe.orchestrator.store import JobStore

__all__ = ["JobService", "JobStore", "PipelineExecutor", "ProgressBus", "Subscription"]
