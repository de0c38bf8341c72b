"""
Caller-facing scheduling API.

Wraps the delayed queue engine with queue routing, schedule hooks, custom
schedulers and inline mode. Jobs are addressed by class name and argument
list; the queue is resolved from the registry unless given explicitly.

Example:
    client = SchedulerClient(DelayedQueue(get_store()))
    await client.enqueue_in(300, "SendFollowUpEmail", {"account_id": 1})
"""

import logging
import math
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

from src.config import get_settings
from src.constants import SPAN_SCHEDULE_JOB
from src.errors import InvalidArgumentError
from src.observability.metrics import get_metrics
from src.observability.tracing import job_span
from src.scheduler.queue import DelayedQueue
from src.scheduler.registry import SchedulerRegistry, get_registry
from src.types.job import JobDescriptor, ScheduledJob, to_timestamp

logger = logging.getLogger(__name__)

ArgsPredicate = Callable[[list[Any]], bool]
PayloadPredicate = Callable[[dict[str, Any]], bool]


def _require_predicate(predicate: Callable[..., bool] | None) -> None:
    if predicate is None:
        raise InvalidArgumentError("Please supply a predicate")


def _require_seconds(seconds: Any) -> None:
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        raise InvalidArgumentError("Please supply a numeric number of seconds")
    if not math.isfinite(seconds):
        raise InvalidArgumentError(f"Seconds must be finite, got {seconds}")


class SchedulerClient:
    """
    Schedule, inspect and cancel delayed jobs.

    In inline mode nothing is ever delayed: every scheduled job is executed
    immediately and removal-by-job operations return 0.
    """

    def __init__(
        self,
        queue: DelayedQueue,
        registry: SchedulerRegistry | None = None,
        inline: bool | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the client.

        Args:
            queue: The delayed queue engine.
            registry: Queue routes, hooks and custom schedulers.
            inline: Execute jobs immediately instead of delaying them.
            clock: Source of the current epoch time.
        """
        self._queue = queue
        self._registry = registry or get_registry()
        self._inline = get_settings().scheduler_inline if inline is None else inline
        self._clock = clock
        self._metrics = get_metrics()

    @property
    def queue(self) -> DelayedQueue:
        return self._queue

    @property
    def registry(self) -> SchedulerRegistry:
        return self._registry

    def build_job(
        self,
        class_name: str,
        args: tuple[Any, ...] | list[Any],
        queue: str | None = None,
    ) -> JobDescriptor:
        """Build a job, routing it to its class's queue unless ``queue`` is given."""
        if not class_name:
            raise InvalidArgumentError("Jobs must be given a class")
        return JobDescriptor(
            class_name=class_name,
            args=list(args),
            queue=queue or self._registry.queue_for(class_name),
        )

    # Scheduling

    async def enqueue_at(self, timestamp: int | float | datetime, class_name: str, *args: Any) -> bool:
        """
        Schedule a job to be queued at ``timestamp``.

        Returns:
            False if a before-schedule hook rejected the job, else True.
        """
        if not class_name:
            raise InvalidArgumentError("Jobs must be given a class")
        queue = self._registry.queue_for(class_name)
        return await self.enqueue_at_with_queue(queue, timestamp, class_name, *args)

    async def enqueue_at_with_queue(
        self,
        queue: str,
        timestamp: int | float | datetime,
        class_name: str,
        *args: Any,
    ) -> bool:
        """
        Schedule a job onto an explicit queue at ``timestamp``.

        A timestamp already in the past (or inline mode) runs the job now,
        through its custom scheduler if one is registered.

        Returns:
            False if a before-schedule hook rejected the job, else True.
        """
        ts = to_timestamp(timestamp)
        if not queue:
            raise InvalidArgumentError(f"Jobs must be placed onto a queue: {class_name}")
        job = self.build_job(class_name, args, queue)
        # Reject unencodable arguments before any hook runs
        job.encode()

        if not await self._registry.run_before_schedule_hooks(class_name, job.args):
            logger.info(
                "Scheduling rejected by before_schedule hook",
                extra={"class_name": class_name, "queue": queue},
            )
            return False

        with job_span(SPAN_SCHEDULE_JOB, class_name, queue, ts) as span:
            if self._inline or ts < int(self._clock()):
                span.set_attribute("immediate", True)
                await self._run_now(job)
            else:
                await self._queue.schedule(ts, job)

        await self._registry.run_after_schedule_hooks(class_name, job.args)
        return True

    async def _run_now(self, job: JobDescriptor) -> None:
        custom = self._registry.custom_scheduler_for(job.class_name)
        if custom is not None:
            await custom.scheduled(job.queue, job.class_name, list(job.args))
        else:
            await self._queue.dispatcher.create_immediate(job.queue, job.class_name, list(job.args))
        self._metrics.record_job_dispatched(job.queue, source="immediate")

    async def enqueue_in(self, seconds: int | float, class_name: str, *args: Any) -> bool:
        """Schedule a job ``seconds`` from now."""
        _require_seconds(seconds)
        return await self.enqueue_at(self._clock() + seconds, class_name, *args)

    async def enqueue_in_with_queue(
        self,
        queue: str,
        seconds: int | float,
        class_name: str,
        *args: Any,
    ) -> bool:
        """Schedule a job onto an explicit queue ``seconds`` from now."""
        _require_seconds(seconds)
        return await self.enqueue_at_with_queue(queue, self._clock() + seconds, class_name, *args)

    # Removal by job

    async def remove_delayed(self, class_name: str, *args: Any) -> int:
        """
        Remove every scheduled copy of a job.

        Returns:
            Number of copies removed.
        """
        return await self.remove_job(self.build_job(class_name, args))

    async def remove_job(self, job: JobDescriptor) -> int:
        """Remove every scheduled copy of an already-built job."""
        if self._inline:
            return 0
        return await self._queue.remove_all_occurrences(job)

    async def enqueue_delayed(self, class_name: str, *args: Any) -> int:
        """
        Remove every scheduled copy of a job and dispatch each one now.

        Returns:
            Number of jobs dispatched.
        """
        return await self.enqueue_job_now(self.build_job(class_name, args))

    async def enqueue_job_now(self, job: JobDescriptor) -> int:
        """Remove every scheduled copy of an already-built job and dispatch each one."""
        removed = await self.remove_job(job)
        for _ in range(removed):
            await self._queue.dispatcher.dispatch(job.queue, job.class_name, list(job.args))
            self._metrics.record_job_dispatched(job.queue, source="enqueue_delayed")
        return removed

    async def remove_delayed_from_timestamp(
        self,
        timestamp: int | float | datetime,
        class_name: str,
        *args: Any,
    ) -> int:
        """
        Remove every copy of a job from one bucket.

        Returns:
            Number of copies removed.
        """
        if self._inline:
            return 0
        return await self._queue.remove_from_bucket(timestamp, self.build_job(class_name, args))

    # Removal by selection

    async def find_delayed_selection(
        self,
        predicate: ArgsPredicate | None,
        class_name: str | None = None,
    ) -> list[ScheduledJob]:
        """Find delayed jobs whose argument list satisfies ``predicate``."""
        _require_predicate(predicate)
        return await self._queue.find_matching(lambda job: predicate(list(job.args)), class_name)

    async def remove_delayed_selection(
        self,
        predicate: ArgsPredicate | None,
        class_name: str | None = None,
    ) -> int:
        """
        Remove delayed jobs whose argument list satisfies ``predicate``.

        Example:
            await client.remove_delayed_selection(lambda args: args[0]["account_id"] == 0)
        """
        _require_predicate(predicate)
        return await self._queue.remove_matching(lambda job: predicate(list(job.args)), class_name)

    async def remove_delayed_selection_with_all_job_infos(self, predicate: PayloadPredicate | None) -> int:
        """
        Remove delayed jobs whose full payload satisfies ``predicate``.

        The predicate receives ``{"class": ..., "args": [...], "queue": ...}``.
        """
        _require_predicate(predicate)
        return await self._queue.remove_matching(lambda job: predicate(job.to_payload()))

    async def change_delayed_selection_timestamp(
        self,
        timestamp: int | float | datetime,
        predicate: PayloadPredicate | None,
    ) -> int:
        """
        Move delayed jobs whose full payload satisfies ``predicate`` to ``timestamp``.

        Returns:
            Number of jobs moved.
        """
        _require_predicate(predicate)
        return await self._queue.reschedule_matching(lambda job: predicate(job.to_payload()), timestamp)

    async def enqueue_delayed_selection(
        self,
        predicate: ArgsPredicate | None,
        class_name: str | None = None,
    ) -> int:
        """
        Dispatch now every delayed job whose argument list satisfies ``predicate``.

        Returns:
            Number of jobs dispatched.
        """
        _require_predicate(predicate)
        return await self._queue.enqueue_matching_now(lambda job: predicate(list(job.args)), class_name)

    # Inspection

    async def is_delayed(self, class_name: str, *args: Any) -> bool:
        """Check whether a job is scheduled."""
        return await self._queue.exists(self.build_job(class_name, args))

    async def scheduled_at(self, class_name: str, *args: Any) -> list[int]:
        """Timestamps at which a job is scheduled."""
        return await self._queue.scheduled_times(self.build_job(class_name, args))

    async def count_all_scheduled_jobs(self) -> int:
        return await self._queue.total_count()

    async def reset_delayed_queue(self) -> None:
        """Clear every delayed job."""
        await self._queue.reset_all()

    async def delayed_queue_peek(self, start: int, count: int) -> list[int]:
        return await self._queue.peek_schedule(start, count)

    async def delayed_queue_schedule_size(self) -> int:
        return await self._queue.schedule_size()

    async def delayed_timestamp_size(self, timestamp: int | float | datetime) -> int:
        return await self._queue.bucket_size(timestamp)

    async def delayed_timestamp_peek(
        self,
        timestamp: int | float | datetime,
        start: int,
        count: int,
    ) -> list[JobDescriptor]:
        return await self._queue.peek_bucket(timestamp, start, count)

    async def next_delayed_timestamp(self, at_time: int | float | datetime | None = None) -> int | None:
        return await self._queue.next_due_bucket(self._clock() if at_time is None else at_time)

    async def next_item_for_timestamp(self, timestamp: int | float | datetime) -> JobDescriptor | None:
        return await self._queue.pop_next(timestamp)

    async def last_enqueued_at(self, job_name: str, when: Any) -> None:
        await self._queue.record_last_enqueued_at(job_name, when)

    async def get_last_enqueued_at(self, job_name: str) -> str | None:
        return await self._queue.get_last_enqueued_at(job_name)
