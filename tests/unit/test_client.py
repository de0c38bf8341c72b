"""
Unit tests for the scheduler client.
"""

from typing import Any

import pytest

from src.errors import InvalidArgumentError
from src.scheduler import DelayedQueue, SchedulerClient, SchedulerRegistry
from src.store import InMemoryDelayedStore


class RecordingScheduler:
    """Custom scheduler that records immediate runs."""

    def __init__(self):
        self.calls: list[tuple[str, str, list[Any]]] = []

    async def scheduled(self, queue: str, class_name: str, args: list[Any]) -> None:
        self.calls.append((queue, class_name, args))


class TestEnqueue:
    """Tests for scheduling through the client."""

    @pytest.mark.asyncio
    async def test_enqueue_at_routes_by_class(self, scheduler_client: SchedulerClient, now: int):
        assert await scheduler_client.enqueue_at(now + 60, "SendFollowUpEmail", {"account_id": 1}) is True

        job = scheduler_client.build_job("SendFollowUpEmail", [{"account_id": 1}])
        assert job.queue == "mailers"
        assert await scheduler_client.scheduled_at("SendFollowUpEmail", {"account_id": 1}) == [now + 60]

    @pytest.mark.asyncio
    async def test_enqueue_in_is_relative_to_clock(self, scheduler_client: SchedulerClient, now: int):
        await scheduler_client.enqueue_in(30, "SomeJob", "x")

        assert await scheduler_client.scheduled_at("SomeJob", "x") == [now + 30]

    @pytest.mark.asyncio
    async def test_enqueue_at_with_queue(self, scheduler_client: SchedulerClient, now: int):
        await scheduler_client.enqueue_at_with_queue("critical", now + 5, "SomeJob", 1)

        jobs = await scheduler_client.delayed_timestamp_peek(now + 5, 0, 1)
        assert jobs[0].queue == "critical"

    @pytest.mark.asyncio
    async def test_enqueue_at_now_is_scheduled(
        self,
        store: InMemoryDelayedStore,
        scheduler_client: SchedulerClient,
        now: int,
    ):
        """A job due exactly now is delayed, not run inline."""
        await scheduler_client.enqueue_at(now, "SomeJob")

        assert await scheduler_client.delayed_timestamp_size(now) == 1
        assert store.queues == {}

    @pytest.mark.asyncio
    async def test_past_timestamp_runs_immediately(
        self,
        store: InMemoryDelayedStore,
        scheduler_client: SchedulerClient,
        now: int,
    ):
        assert await scheduler_client.enqueue_at(now - 1, "SomeJob", 1) is True

        assert await scheduler_client.count_all_scheduled_jobs() == 0
        assert store.queues == {"default": ['{"class":"SomeJob","args":[1]}']}

    @pytest.mark.asyncio
    async def test_past_timestamp_uses_custom_scheduler(
        self,
        store: InMemoryDelayedStore,
        scheduler_client: SchedulerClient,
        registry: SchedulerRegistry,
        now: int,
    ):
        custom = RecordingScheduler()
        registry.register_custom_scheduler("SomeJob", custom)

        await scheduler_client.enqueue_at(now - 100, "SomeJob", 1)

        assert custom.calls == [("default", "SomeJob", [1])]
        assert store.queues == {}

    @pytest.mark.asyncio
    async def test_inline_mode_runs_immediately(
        self,
        store: InMemoryDelayedStore,
        registry: SchedulerRegistry,
        now: int,
    ):
        client = SchedulerClient(DelayedQueue(store), registry=registry, inline=True, clock=lambda: now)

        await client.enqueue_in(3600, "SomeJob", 1)

        assert await client.count_all_scheduled_jobs() == 0
        assert len(store.queues["default"]) == 1
        assert await client.remove_delayed("SomeJob", 1) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seconds", ["10", None, True])
    async def test_enqueue_in_rejects_non_numeric(self, scheduler_client: SchedulerClient, seconds):
        with pytest.raises(InvalidArgumentError):
            await scheduler_client.enqueue_in(seconds, "SomeJob")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seconds", [float("nan"), float("inf"), float("-inf")])
    async def test_enqueue_in_rejects_non_finite(self, scheduler_client: SchedulerClient, seconds):
        with pytest.raises(InvalidArgumentError):
            await scheduler_client.enqueue_in(seconds, "SomeJob", 1)
        with pytest.raises(InvalidArgumentError):
            await scheduler_client.enqueue_in_with_queue("critical", seconds, "SomeJob", 1)

        assert await scheduler_client.count_all_scheduled_jobs() == 0

    @pytest.mark.asyncio
    async def test_unrouted_class_rejected(self, scheduler_client: SchedulerClient, now: int):
        with pytest.raises(InvalidArgumentError):
            await scheduler_client.enqueue_at(now + 10, "UnknownJob")

    @pytest.mark.asyncio
    async def test_blank_class_rejected(self, scheduler_client: SchedulerClient, now: int):
        with pytest.raises(InvalidArgumentError):
            await scheduler_client.enqueue_at(now + 10, "")


class TestHooks:
    """Tests for before/after schedule hooks."""

    @pytest.mark.asyncio
    async def test_before_hook_rejection(
        self,
        scheduler_client: SchedulerClient,
        registry: SchedulerRegistry,
        now: int,
    ):
        after_calls = []

        @registry.before_schedule("SomeJob")
        def reject(class_name, args):
            return False

        @registry.after_schedule("SomeJob")
        def record(class_name, args):
            after_calls.append(args)

        assert await scheduler_client.enqueue_at(now + 10, "SomeJob", 1) is False
        assert await scheduler_client.is_delayed("SomeJob", 1) is False
        assert after_calls == []

    @pytest.mark.asyncio
    async def test_hooks_run_around_scheduling(
        self,
        scheduler_client: SchedulerClient,
        registry: SchedulerRegistry,
        now: int,
    ):
        calls = []

        @registry.before_schedule("SomeJob")
        async def before(class_name, args):
            calls.append(("before", class_name, args))

        @registry.after_schedule("SomeJob")
        async def after(class_name, args):
            calls.append(("after", class_name, args))

        assert await scheduler_client.enqueue_at(now + 10, "SomeJob", 1) is True
        assert calls == [("before", "SomeJob", [1]), ("after", "SomeJob", [1])]


class TestRemoval:
    """Tests for removal through the client."""

    @pytest.mark.asyncio
    async def test_remove_delayed(self, scheduler_client: SchedulerClient, now: int):
        await scheduler_client.enqueue_at(now + 10, "SomeJob", 1)
        await scheduler_client.enqueue_at(now + 20, "SomeJob", 1)

        assert await scheduler_client.remove_delayed("SomeJob", 1) == 2
        assert await scheduler_client.is_delayed("SomeJob", 1) is False

    @pytest.mark.asyncio
    async def test_enqueue_delayed_dispatches_each_copy(
        self,
        store: InMemoryDelayedStore,
        scheduler_client: SchedulerClient,
        now: int,
    ):
        await scheduler_client.enqueue_at(now + 10, "SomeJob", 1)
        await scheduler_client.enqueue_at(now + 20, "SomeJob", 1)

        assert await scheduler_client.enqueue_delayed("SomeJob", 1) == 2
        assert len(store.queues["default"]) == 2

    @pytest.mark.asyncio
    async def test_remove_delayed_from_timestamp(self, scheduler_client: SchedulerClient, now: int):
        await scheduler_client.enqueue_at(now + 10, "SomeJob", 1)
        await scheduler_client.enqueue_at(now + 20, "SomeJob", 1)

        assert await scheduler_client.remove_delayed_from_timestamp(now + 10, "SomeJob", 1) == 1
        assert await scheduler_client.scheduled_at("SomeJob", 1) == [now + 20]


class TestSelection:
    """Tests for predicate-driven client operations."""

    @pytest.mark.asyncio
    async def test_selection_requires_predicate(self, scheduler_client: SchedulerClient):
        with pytest.raises(InvalidArgumentError):
            await scheduler_client.remove_delayed_selection(None)
        with pytest.raises(InvalidArgumentError):
            await scheduler_client.change_delayed_selection_timestamp(0, None)

    @pytest.mark.asyncio
    async def test_remove_delayed_selection(self, scheduler_client: SchedulerClient, now: int):
        await scheduler_client.enqueue_at(now + 10, "SomeJob", {"account_id": 0})
        await scheduler_client.enqueue_at(now + 10, "OtherJob", {"account_id": 0})
        await scheduler_client.enqueue_at(now + 10, "SomeJob", {"account_id": 1})

        removed = await scheduler_client.remove_delayed_selection(
            lambda args: args[0]["account_id"] == 0, "SomeJob"
        )

        assert removed == 1
        assert await scheduler_client.count_all_scheduled_jobs() == 2

    @pytest.mark.asyncio
    async def test_remove_with_all_job_infos(self, scheduler_client: SchedulerClient, now: int):
        await scheduler_client.enqueue_at(now + 10, "SomeJob", 1)
        await scheduler_client.enqueue_at(now + 10, "OtherJob", 1)

        removed = await scheduler_client.remove_delayed_selection_with_all_job_infos(
            lambda payload: payload["queue"] == "low"
        )

        assert removed == 1
        assert await scheduler_client.is_delayed("OtherJob", 1) is False

    @pytest.mark.asyncio
    async def test_change_delayed_selection_timestamp(self, scheduler_client: SchedulerClient, now: int):
        await scheduler_client.enqueue_at(now + 10, "SomeJob", 1)

        moved = await scheduler_client.change_delayed_selection_timestamp(
            now + 500, lambda payload: payload["class"] == "SomeJob"
        )

        assert moved == 1
        assert await scheduler_client.scheduled_at("SomeJob", 1) == [now + 500]

    @pytest.mark.asyncio
    async def test_enqueue_delayed_selection(
        self,
        store: InMemoryDelayedStore,
        scheduler_client: SchedulerClient,
        now: int,
    ):
        await scheduler_client.enqueue_at(now + 10, "SomeJob", 1)
        await scheduler_client.enqueue_at(now + 20, "SomeJob", 2)

        assert await scheduler_client.enqueue_delayed_selection(lambda args: args == [2]) == 1
        assert store.queues["default"] == ['{"class":"SomeJob","args":[2]}']

    @pytest.mark.asyncio
    async def test_find_delayed_selection(self, scheduler_client: SchedulerClient, now: int):
        await scheduler_client.enqueue_at(now + 10, "SomeJob", 1)

        found = await scheduler_client.find_delayed_selection(lambda args: True)

        assert [(match.timestamp, match.job.class_name) for match in found] == [(now + 10, "SomeJob")]


class TestInspection:
    """Tests for inspection helpers."""

    @pytest.mark.asyncio
    async def test_next_delayed_timestamp_and_item(self, scheduler_client: SchedulerClient, now: int):
        await scheduler_client.enqueue_at(now, "SomeJob", 1)

        assert await scheduler_client.next_delayed_timestamp() == now
        job = await scheduler_client.next_item_for_timestamp(now)

        assert job.args == [1]
        assert await scheduler_client.next_delayed_timestamp() is None

    @pytest.mark.asyncio
    async def test_peek_and_sizes(self, scheduler_client: SchedulerClient, now: int):
        await scheduler_client.enqueue_at(now + 1, "SomeJob", 1)
        await scheduler_client.enqueue_at(now + 2, "SomeJob", 2)

        assert await scheduler_client.delayed_queue_peek(0, 10) == [now + 1, now + 2]
        assert await scheduler_client.delayed_queue_schedule_size() == 2

        await scheduler_client.reset_delayed_queue()

        assert await scheduler_client.delayed_queue_schedule_size() == 0

    @pytest.mark.asyncio
    async def test_last_enqueued_at(self, scheduler_client: SchedulerClient):
        await scheduler_client.last_enqueued_at("SomeJob", "2024-01-01T00:00:00+00:00")

        assert await scheduler_client.get_last_enqueued_at("SomeJob") == "2024-01-01T00:00:00+00:00"
