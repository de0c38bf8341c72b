"""
Delayed queue engine.

Keeps three structures consistent over a shared store:
- buckets: per-timestamp FIFO lists of encoded jobs
- the schedule index: timestamps whose bucket is non-empty
- the reverse index: encoded job -> timestamps holding a copy of it

There is no in-process locking. Every process talks to the same store and
relies on its atomic primitives; the only multi-key commit is the guarded
cleanup of an emptied bucket.
"""

import logging
import time
from collections.abc import Callable, Iterator, Sequence
from datetime import datetime
from typing import Any

from src.config import get_settings
from src.constants import SPAN_FIND_SELECTION
from src.errors import InvalidArgumentError, TransactionAbortedError
from src.observability.metrics import get_metrics
from src.observability.tracing import get_tracer
from src.scheduler.dispatch import Dispatcher, QueueDispatcher
from src.store.base import DelayedStore
from src.types.job import JobDescriptor, ScheduledJob, to_timestamp

logger = logging.getLogger(__name__)

JobPredicate = Callable[[JobDescriptor], bool]


def _batched(items: Sequence[int], size: int) -> Iterator[Sequence[int]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class DelayedQueue:
    """
    Time-indexed queue of delayed jobs.

    Implements:
    - Scheduling into per-timestamp buckets
    - Due-bucket lookup and one-at-a-time popping with guarded cleanup
    - Removal by job, by bucket, or by predicate
    - Batched scans over every bucket
    """

    def __init__(
        self,
        store: DelayedStore,
        dispatcher: Dispatcher | None = None,
        scan_batch_size: int | None = None,
    ):
        """
        Initialize the queue.

        Args:
            store: The backing store shared by every process.
            dispatcher: Hand-off point for jobs enqueued ahead of time.
                Defaults to pushing onto live queues in the same store.
            scan_batch_size: Buckets fetched per round trip during scans.
        """
        settings = get_settings()
        self._store = store
        self._dispatcher = dispatcher or QueueDispatcher(store)
        if scan_batch_size is None:
            scan_batch_size = settings.scheduler_scan_batch_size
        self._scan_batch_size = scan_batch_size
        self._metrics = get_metrics()

        if self._scan_batch_size < 1:
            raise InvalidArgumentError("scan_batch_size must be positive")

    @property
    def store(self) -> DelayedStore:
        return self._store

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    # Scheduling

    async def schedule(self, timestamp: int | float | datetime, job: JobDescriptor) -> None:
        """
        Place a job in the bucket for ``timestamp``.

        Writes the bucket first, then the reverse index, then the schedule
        index. A crash part-way leaves at worst an entry nobody can see.
        """
        ts = to_timestamp(timestamp)
        encoded = job.encode()
        await self._push(ts, encoded)
        self._metrics.record_job_scheduled(job.queue)

        logger.debug(
            "Scheduled delayed job",
            extra={"timestamp": ts, "class_name": job.class_name, "queue": job.queue},
        )

    async def _push(self, timestamp: int, encoded: str) -> None:
        await self._store.push(timestamp, encoded)
        await self._store.link(encoded, timestamp)
        await self._store.index_add(timestamp)

    # Polling

    async def next_due_bucket(self, at_time: int | float | datetime | None = None) -> int | None:
        """
        Earliest timestamp at or before ``at_time`` (default: now) with pending jobs.

        Read-only; returns ``None`` when nothing is due.
        """
        hi = int(time.time()) if at_time is None else to_timestamp(at_time)
        return await self._store.first_in_range(None, hi)

    async def pop_next(self, timestamp: int | float | datetime) -> JobDescriptor | None:
        """
        Pop the earliest job of a bucket.

        Undecodable entries are dropped with an error log and popping
        continues. When the bucket is left empty (or was already empty but
        still indexed) it is reaped by the guarded cleanup.

        Returns:
            The job, or None if the bucket is empty or absent.
        """
        ts = to_timestamp(timestamp)
        job = None

        while job is None:
            encoded = await self._store.pop_front(ts)
            if encoded is None:
                break

            await self._release_link(ts, encoded)

            try:
                job = JobDescriptor.decode(encoded)
            except InvalidArgumentError:
                logger.error(
                    "Dropping undecodable delayed job",
                    extra={"timestamp": ts, "payload": encoded},
                )

        await self._clean_up_bucket(ts)
        return job

    async def _release_link(self, timestamp: int, encoded: str) -> None:
        # Unlink first, then relink if a copy remains, so a concurrent
        # schedule of the same job into this bucket never loses its link
        await self._store.unlink(encoded, timestamp)
        if await self._store.contains(timestamp, encoded):
            await self._store.link(encoded, timestamp)

    async def _clean_up_bucket(self, timestamp: int) -> bool:
        """
        Delete an empty bucket and its schedule index entry.

        Runs as a guarded transaction so a job pushed by another process
        between the size check and the commit is never deleted with it.

        Returns:
            True if the bucket was deleted.
        """
        try:
            async with self._store.watch_bucket(timestamp) as txn:
                if await txn.size() == 0:
                    await txn.delete()
                    return True
        except TransactionAbortedError:
            self._metrics.record_cleanup_aborted()
            logger.debug(
                "Bucket cleanup aborted by concurrent writer",
                extra={"timestamp": timestamp},
            )
        return False

    # Removal

    async def remove_all_occurrences(self, job: JobDescriptor) -> int:
        """
        Remove every copy of a job from every bucket.

        Emptied buckets are not cleaned up here; their stale schedule index
        entries are reaped the next time ``pop_next`` visits them.

        Returns:
            Number of copies removed.
        """
        removed = await self._store.purge(job.encode())
        self._metrics.record_jobs_removed("remove_all", removed)

        if removed:
            logger.info(
                "Removed delayed job",
                extra={"class_name": job.class_name, "count": removed},
            )
        return removed

    async def remove_one(self, timestamp: int | float | datetime, job: JobDescriptor) -> int:
        """
        Remove a single copy of a job from one bucket.

        Returns:
            1 if a copy was removed, else 0.
        """
        removed = await self._remove_occurrence(to_timestamp(timestamp), job.encode())
        self._metrics.record_jobs_removed("remove_one", removed)
        return removed

    async def remove_from_bucket(self, timestamp: int | float | datetime, job: JobDescriptor) -> int:
        """
        Remove every copy of a job from one bucket.

        O(N) in the size of the bucket.

        Returns:
            Number of copies removed.
        """
        ts = to_timestamp(timestamp)
        encoded = job.encode()

        await self._store.unlink(encoded, ts)
        removed = await self._store.remove_all(ts, encoded)
        await self._clean_up_bucket(ts)

        self._metrics.record_jobs_removed("remove_from_bucket", removed)
        return removed

    async def _remove_occurrence(self, timestamp: int, encoded: str) -> int:
        removed = await self._store.remove_one(timestamp, encoded)
        if removed:
            await self._release_link(timestamp, encoded)
            await self._clean_up_bucket(timestamp)
        return removed

    async def reset_all(self) -> None:
        """
        Delete every bucket, reverse index entry and the schedule index.

        Not isolated from concurrent writers; meant for maintenance.
        """
        timestamps = await self._store.peek_range(0, -1)

        for batch in _batched(timestamps, self._scan_batch_size):
            contents = await self._store.fetch_buckets(batch)
            await self._store.drop_links({item for bucket in contents for item in bucket})
            await self._store.delete_buckets(batch)

        await self._store.clear_index()
        logger.info("Reset delayed queue", extra={"buckets": len(timestamps)})

    # Selection

    async def find_matching(
        self,
        predicate: JobPredicate | None,
        class_name: str | None = None,
    ) -> list[ScheduledJob]:
        """
        Find every delayed job matching a predicate.

        Buckets are fetched in batches, one round trip per batch. Results
        come back in batch order, then bucket order, then in-bucket order.

        Args:
            predicate: Called with each decoded job.
            class_name: Only consider jobs of this class.

        Returns:
            One ScheduledJob per matching occurrence.

        Raises:
            InvalidArgumentError: If no predicate is given.
        """
        if predicate is None:
            raise InvalidArgumentError("Please supply a predicate")

        found: list[ScheduledJob] = []

        with get_tracer().start_as_current_span(SPAN_FIND_SELECTION) as span:
            timestamps = await self._store.peek_range(0, -1)
            span.set_attribute("buckets", len(timestamps))

            for batch in _batched(timestamps, self._scan_batch_size):
                contents = await self._store.fetch_buckets(batch)
                for timestamp, bucket in zip(batch, contents):
                    for encoded in bucket:
                        try:
                            job = JobDescriptor.decode(encoded)
                        except InvalidArgumentError:
                            logger.warning(
                                "Skipping undecodable delayed job",
                                extra={"timestamp": timestamp, "payload": encoded},
                            )
                            continue

                        if class_name is not None and job.class_name != class_name:
                            continue
                        if predicate(job):
                            found.append(ScheduledJob(timestamp, encoded, job))

            span.set_attribute("matches", len(found))

        return found

    async def remove_matching(
        self,
        predicate: JobPredicate | None,
        class_name: str | None = None,
    ) -> int:
        """
        Remove every occurrence matching a predicate.

        Returns:
            Number of occurrences removed.
        """
        removed = 0
        for match in await self.find_matching(predicate, class_name):
            removed += await self._remove_occurrence(match.timestamp, match.encoded)

        self._metrics.record_jobs_removed("remove_matching", removed)
        return removed

    async def reschedule_matching(
        self,
        predicate: JobPredicate | None,
        timestamp: int | float | datetime,
    ) -> int:
        """
        Move every occurrence matching a predicate to a new timestamp.

        The stored encoding is re-inserted unchanged.

        Returns:
            Number of occurrences moved.
        """
        new_ts = to_timestamp(timestamp)
        moved = 0

        for match in await self.find_matching(predicate):
            if await self._remove_occurrence(match.timestamp, match.encoded):
                await self._push(new_ts, match.encoded)
                moved += 1

        if moved:
            logger.info(
                "Rescheduled delayed jobs",
                extra={"timestamp": new_ts, "count": moved},
            )
        return moved

    async def enqueue_matching_now(
        self,
        predicate: JobPredicate | None,
        class_name: str | None = None,
    ) -> int:
        """
        Remove every occurrence matching a predicate and dispatch it now.

        Each removed occurrence is dispatched on its own, so duplicates are
        dispatched once per copy.

        Returns:
            Number of jobs dispatched.
        """
        dispatched = 0

        for match in await self.find_matching(predicate, class_name):
            if not await self._remove_occurrence(match.timestamp, match.encoded):
                continue
            job = match.job
            await self._dispatcher.dispatch(job.queue, job.class_name, list(job.args))
            self._metrics.record_job_dispatched(job.queue, source="selection")
            dispatched += 1

        return dispatched

    # Inspection

    async def exists(self, job: JobDescriptor) -> bool:
        """Check whether any copy of a job is scheduled."""
        return bool(await self._store.lookup(job.encode()))

    async def scheduled_times(self, job: JobDescriptor) -> list[int]:
        """Timestamps holding a copy of a job, ascending."""
        return sorted(await self._store.lookup(job.encode()))

    async def total_count(self) -> int:
        """Number of delayed jobs across every bucket."""
        timestamps = await self._store.peek_range(0, -1)
        total = 0
        for batch in _batched(timestamps, self._scan_batch_size):
            total += sum(await self._store.bucket_sizes(batch))
        return total

    async def peek_schedule(self, start: int = 0, count: int = 1) -> list[int]:
        """Scheduled timestamps from offset ``start``, ascending."""
        return await self._store.peek_range(start, count)

    async def schedule_size(self) -> int:
        """Number of timestamps with pending jobs."""
        return await self._store.index_size()

    async def peek_bucket(
        self,
        timestamp: int | float | datetime,
        start: int = 0,
        count: int = 1,
    ) -> list[JobDescriptor]:
        """Jobs in a bucket from offset ``start``, without removing them."""
        jobs = []
        for encoded in await self._store.range(to_timestamp(timestamp), start, count):
            try:
                jobs.append(JobDescriptor.decode(encoded))
            except InvalidArgumentError:
                logger.warning("Skipping undecodable delayed job", extra={"payload": encoded})
        return jobs

    async def bucket_size(self, timestamp: int | float | datetime) -> int:
        """Number of jobs in a bucket."""
        return await self._store.size(to_timestamp(timestamp))

    # Bookkeeping

    async def record_last_enqueued_at(self, job_name: str, when: Any) -> None:
        """Record when a job was last moved to its live queue."""
        await self._store.set_last_enqueued_at(job_name, str(when))

    async def get_last_enqueued_at(self, job_name: str) -> str | None:
        """Read the last-enqueued-at bookkeeping for a job."""
        return await self._store.get_last_enqueued_at(job_name)
