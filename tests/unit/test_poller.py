"""
Unit tests for the delayed job poller.
"""

import asyncio
import json

import pytest

from src.config import get_settings
from src.errors import InvalidArgumentError
from src.scheduler import DelayedQueue
from src.scheduler.poller import DelayedPoller
from src.store import InMemoryDelayedStore
from src.types.job import JobDescriptor


def make_job(*args, class_name: str = "SomeJob", queue: str = "default") -> JobDescriptor:
    return JobDescriptor(class_name=class_name, args=list(args), queue=queue)


class TestDelayedPoller:
    """Tests for poll cycles."""

    @pytest.fixture
    def poller(self, delayed_queue: DelayedQueue, now: int) -> DelayedPoller:
        return DelayedPoller(delayed_queue, poll_interval=0.01, clock=lambda: now)

    @pytest.mark.asyncio
    async def test_run_once_dispatches_due_jobs(
        self,
        store: InMemoryDelayedStore,
        delayed_queue: DelayedQueue,
        poller: DelayedPoller,
        now: int,
    ):
        """Every due bucket is drained in timestamp order."""
        await delayed_queue.schedule(now - 10, make_job(1))
        await delayed_queue.schedule(now, make_job(2))
        await delayed_queue.schedule(now, make_job(3, class_name="OtherJob", queue="low"))

        dispatched = await poller.run_once()

        assert dispatched == 3
        assert [json.loads(item)["args"] for item in store.queues["default"]] == [[1], [2]]
        assert store.queues["low"] == ['{"class":"OtherJob","args":[3]}']
        assert await delayed_queue.schedule_size() == 0

    @pytest.mark.asyncio
    async def test_run_once_leaves_future_jobs(
        self,
        store: InMemoryDelayedStore,
        delayed_queue: DelayedQueue,
        poller: DelayedPoller,
        now: int,
    ):
        job = make_job(1)
        await delayed_queue.schedule(now + 1, job)

        assert await poller.run_once() == 0
        assert await delayed_queue.exists(job) is True
        assert store.queues == {}

    @pytest.mark.asyncio
    async def test_run_once_at_explicit_time(
        self,
        delayed_queue: DelayedQueue,
        poller: DelayedPoller,
        now: int,
    ):
        await delayed_queue.schedule(now + 100, make_job(1))

        assert await poller.run_once(at_time=now + 100) == 1

    @pytest.mark.asyncio
    async def test_dispatch_records_last_enqueued_at(
        self,
        delayed_queue: DelayedQueue,
        poller: DelayedPoller,
        now: int,
    ):
        await delayed_queue.schedule(now, make_job(1))

        await poller.run_once()

        assert await delayed_queue.get_last_enqueued_at("SomeJob") is not None

    @pytest.mark.asyncio
    async def test_run_once_reaps_stale_index_entries(
        self,
        delayed_queue: DelayedQueue,
        poller: DelayedPoller,
        now: int,
    ):
        """Buckets emptied by removal are cleaned up on the next poll."""
        job = make_job(1)
        await delayed_queue.schedule(now, job)
        await delayed_queue.remove_all_occurrences(job)

        assert await poller.run_once() == 0
        assert await delayed_queue.schedule_size() == 0

    @pytest.mark.asyncio
    async def test_start_runs_until_stopped(
        self,
        store: InMemoryDelayedStore,
        delayed_queue: DelayedQueue,
        poller: DelayedPoller,
        now: int,
    ):
        await delayed_queue.schedule(now, make_job(1))

        task = asyncio.create_task(poller.start())
        await asyncio.sleep(0.05)
        await poller.stop()
        await asyncio.wait_for(task, timeout=1)

        assert len(store.queues["default"]) == 1


class TestPollInterval:
    """Tests for poll interval configuration."""

    def test_defaults_to_settings(self, delayed_queue: DelayedQueue):
        poller = DelayedPoller(delayed_queue)

        assert poller.poll_interval == get_settings().poller_interval_seconds

    @pytest.mark.parametrize("interval", [0, -1.5])
    def test_rejects_non_positive_interval(self, delayed_queue: DelayedQueue, interval: float):
        with pytest.raises(InvalidArgumentError):
            DelayedPoller(delayed_queue, poll_interval=interval)
