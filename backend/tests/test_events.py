"""Tests for the progress bus and subscriptions."""

import logging

import pytest

from reelpipe.orchestrator.events import ProgressBus
from reelpipe.schemas.job import JobStatus, ProgressEvent


def _event(job_id="job1", status=JobStatus.RUNNING, progress=0, message=""):
    return ProgressEvent(job_id=job_id, status=status, progress_percent=progress, message=message)


def test_sequences_are_per_job():
    bus = ProgressBus()

    assert bus.publish(_event("a")).sequence == 1
    assert bus.publish(_event("a")).sequence == 2
    assert bus.publish(_event("b")).sequence == 1
    assert bus.last_sequence("a") == 2
    assert bus.last_sequence("unknown") == 0


def test_publish_does_not_mutate_input():
    bus = ProgressBus()
    original = _event()
    bus.publish(original)
    assert original.sequence == 0


@pytest.mark.asyncio
async def test_job_subscription_ends_after_terminal_event():
    bus = ProgressBus()
    subscription = bus.subscribe("job1")

    bus.publish(_event(progress=25))
    bus.publish(_event("other", progress=50))
    bus.publish(_event(status=JobStatus.COMPLETED, progress=100))
    bus.publish(_event(progress=100))

    received = [event async for event in subscription]
    assert [e.progress_percent for e in received] == [25, 100]
    assert [e.sequence for e in received] == [1, 2]
    assert subscription.closed


@pytest.mark.asyncio
async def test_initial_event_is_delivered_first():
    bus = ProgressBus()
    seed = _event(status=JobStatus.FAILED, message="Job is failed")

    with bus.subscribe("job1", initial=seed) as subscription:
        received = [event async for event in subscription]

    assert received == [seed]


@pytest.mark.asyncio
async def test_unscoped_subscription_runs_until_closed():
    bus = ProgressBus()
    subscription = bus.subscribe()

    bus.publish(_event("a", status=JobStatus.COMPLETED))
    bus.publish(_event("b"))
    bus.close()

    received = [event async for event in subscription]
    assert [e.job_id for e in received] == ["a", "b"]


@pytest.mark.asyncio
async def test_slow_subscriber_loses_oldest_events():
    bus = ProgressBus(queue_size=2)
    subscription = bus.subscribe("job1")

    for progress in (25, 50, 75):
        bus.publish(_event(progress=progress))

    assert subscription.dropped == 1
    assert (await subscription.__anext__()).progress_percent == 50
    assert (await subscription.__anext__()).progress_percent == 75


@pytest.mark.asyncio
async def test_closed_subscription_stops_receiving():
    bus = ProgressBus()
    async with bus.subscribe("job1") as subscription:
        pass

    bus.publish(_event())
    assert [event async for event in subscription] == []


def test_listener_errors_are_contained(caplog):
    bus = ProgressBus()
    seen = []

    def broken(event):
        raise RuntimeError("listener bug")

    bus.add_listener(broken)
    bus.add_listener(seen.append)

    with caplog.at_level(logging.ERROR, logger="reelpipe.orchestrator.events"):
        published = bus.publish(_event())

    assert seen == [published]
    assert "Progress listener failed" in caplog.text


def test_removed_listener_is_not_called():
    bus = ProgressBus()
    seen = []
    remove = bus.add_listener(seen.append)

    bus.publish(_event())
    remove()
    remove()
    bus.publish(_event())

    assert len(seen) == 1
