"""
Poller process for moving due delayed jobs onto their live queues.

Any number of pollers may run against the same store. Each popped job is
removed from the store by the pop itself, so at most one poller ever sees a
given occurrence. A poller that crashes between pop and dispatch loses that
job.
"""

import asyncio
import logging
import signal
import time
from collections.abc import Callable
from datetime import datetime, timezone

from src.config import get_settings
from src.constants import SPAN_DISPATCH_JOB, SPAN_POLL_CYCLE
from src.errors import InvalidArgumentError
from src.observability.logging import bind_context, setup_logging
from src.observability.metrics import get_metrics, setup_metrics
from src.observability.tracing import get_tracer, job_span
from src.scheduler.queue import DelayedQueue
from src.store import close_redis, get_store, init_redis

logger = logging.getLogger(__name__)


class DelayedPoller:
    """
    Poller that drains due buckets.

    Each cycle:
    1. Ask the schedule index for the earliest due timestamp
    2. Pop that bucket one job at a time, dispatching each job
    3. Repeat until nothing is due, then sleep for the poll interval
    """

    def __init__(
        self,
        queue: DelayedQueue,
        poll_interval: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the poller.

        Args:
            queue: The delayed queue to drain.
            poll_interval: Seconds to sleep between cycles.
            clock: Source of the current epoch time.
        """
        settings = get_settings()
        if poll_interval is None:
            poll_interval = settings.poller_interval_seconds
        if poll_interval <= 0:
            raise InvalidArgumentError("poll_interval must be positive")
        self.poll_interval = poll_interval
        self._queue = queue
        self._clock = clock
        self._running = False
        self._metrics = get_metrics()

    async def start(self) -> None:
        """Start the polling loop."""
        logger.info(f"Poller starting with interval {self.poll_interval}s")
        self._running = True

        while self._running:
            try:
                dispatched = await self.run_once()

                if dispatched > 0:
                    logger.info(f"Dispatched {dispatched} delayed jobs")

            except Exception as e:
                logger.exception(f"Error in poller loop: {e}")

            await asyncio.sleep(self.poll_interval)

        logger.info("Poller stopped")

    async def stop(self) -> None:
        """Stop the poller after the current cycle."""
        logger.info("Poller stopping")
        self._running = False

    async def run_once(self, at_time: float | None = None) -> int:
        """
        Drain every bucket due at ``at_time`` (default: now).

        Returns:
            Number of jobs dispatched.
        """
        started = time.monotonic()
        now = self._clock() if at_time is None else at_time
        dispatched = 0

        with get_tracer().start_as_current_span(SPAN_POLL_CYCLE) as span:
            timestamp = await self._queue.next_due_bucket(now)
            while timestamp is not None:
                dispatched += await self._enqueue_delayed_items_for_timestamp(timestamp)
                timestamp = await self._queue.next_due_bucket(now)

            span.set_attribute("dispatched", dispatched)

        self._metrics.record_poll(time.monotonic() - started)
        self._metrics.update_schedule_size(await self._queue.schedule_size())
        return dispatched

    async def _enqueue_delayed_items_for_timestamp(self, timestamp: int) -> int:
        """
        Pop and dispatch every job in one bucket.

        Returns:
            Number of jobs dispatched.
        """
        dispatched = 0

        job = await self._queue.pop_next(timestamp)
        while job is not None:
            with job_span(SPAN_DISPATCH_JOB, job.class_name, job.queue, timestamp):
                await self._queue.dispatcher.dispatch(job.queue, job.class_name, list(job.args))

            self._metrics.record_job_dispatched(job.queue)
            await self._queue.record_last_enqueued_at(
                job.class_name,
                datetime.now(timezone.utc).isoformat(),
            )
            dispatched += 1

            job = await self._queue.pop_next(timestamp)

        return dispatched


async def run_async() -> None:
    """Run the poller asynchronously."""
    setup_logging()
    setup_metrics()
    bind_context(component="poller")
    await init_redis()

    poller = DelayedPoller(DelayedQueue(get_store()))

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(poller.stop())
        )

    try:
        await poller.start()
    finally:
        await close_redis()


def run() -> None:
    """Run the poller."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
